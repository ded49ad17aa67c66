from typing import Any, Dict, Optional


def row_to_dict(row) -> Dict[str, Any]:
    """Колонки ORM-рядка у JSON-сумісний dict (payload для change feed)."""
    data = {}
    for column in row.__table__.columns:
        value = getattr(row, column.key)
        if hasattr(value, "isoformat"):
            value = value.isoformat()
        elif hasattr(value, "value"):
            value = value.value
        data[column.key] = value
    return data


def serialize_profile(profile) -> Optional[Dict[str, Any]]:
    if profile is None:
        return None
    return {
        "id": profile.id,
        "email": profile.email,
        "first_name": profile.first_name,
        "last_name": profile.last_name,
        "avatar_url": profile.avatar_url,
    }


def serialize_message(message, sender=None) -> Dict[str, Any]:
    data = row_to_dict(message)
    data["sender"] = serialize_profile(sender)
    return data
