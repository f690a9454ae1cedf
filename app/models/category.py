from ..database import Document
from ..utils.text_utils import parse_order_value


def category_to_dict(doc: Document) -> dict:
    """Category document with legacy Spanish field names mapped."""
    data = doc.data
    category = {"id": doc.id, **data}
    if not category.get("title") and isinstance(data.get("name"), str):
        category["title"] = data["name"]
    if not category.get("title") and isinstance(data.get("Nombre"), str):
        category["title"] = data["Nombre"]
    if not category.get("description") and isinstance(data.get("descripcion"), str):
        category["description"] = data["descripcion"]
    order = parse_order_value(data.get("order"))
    if order is not None:
        category["order"] = order
    return category


def task_to_dict(doc: Document) -> dict:
    return {"id": doc.id, **doc.data}
