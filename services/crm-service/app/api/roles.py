from fastapi import APIRouter, Depends
from app.api.deps import get_current_user
from app.core.permissions import describe
from app.models.user import User

router = APIRouter(prefix="/roles", tags=["Roles"])


@router.get("/me/permissions")
def get_my_permissions(actor: User = Depends(get_current_user)):
    """
    The actor's effective permissions as ``{subject: [actions]}``.
    """
    return {"role": actor.role_name, "permissions": describe(actor.role_name)}
