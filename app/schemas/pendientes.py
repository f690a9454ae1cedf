from pydantic import AliasChoices, BaseModel, Field
from typing import Any, Optional, Union


class CategoryIn(BaseModel):
    title: Optional[str] = Field(default=None, validation_alias=AliasChoices("title", "name", "nombre"))
    description: Optional[str] = Field(default=None, validation_alias=AliasChoices("description", "descripcion"))
    color: Optional[str] = None
    order: Optional[Union[int, float, str]] = None


class TaskIn(BaseModel):
    title: Optional[str] = Field(default=None, validation_alias=AliasChoices("title", "name", "nombre"))
    description: Optional[str] = Field(default=None, validation_alias=AliasChoices("description", "descripcion"))
    status: Optional[str] = Field(default=None, validation_alias=AliasChoices("status", "estatus", "state"))
    dueDate: Optional[str] = Field(default=None, validation_alias=AliasChoices("dueDate", "fecha"))
    order: Optional[Union[int, float, str]] = Field(default=None, validation_alias=AliasChoices("order", "position"))


class NoteIn(BaseModel):
    title: Optional[str] = Field(default=None, validation_alias=AliasChoices("title", "name"))
    content: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("content", "body", "descripcion", "description")
    )
    type: Optional[str] = Field(default=None, validation_alias=AliasChoices("type", "noteType"))
    isManzana: Optional[Any] = None


class DebtIn(BaseModel):
    title: Optional[str] = Field(default=None, validation_alias=AliasChoices("title", "name"))
    amount: Optional[Union[float, str]] = Field(default=None, validation_alias=AliasChoices("amount", "monto", "value"))
    type: Optional[str] = None
    date: Optional[Union[str, float]] = Field(default=None, validation_alias=AliasChoices("date", "fecha"))
    notes: Optional[str] = None
    description: Optional[str] = None
