from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from backend.auth import jwt_handler
from backend.core.errors import Forbidden
from backend.database import get_db
from backend.models.user import Role, User, UserStatus

security = HTTPBearer()


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    token = credentials.credentials
    try:
        payload = jwt_handler.decode_access_token(token)
    except Exception as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc

    subject = payload.get("sub")
    if not subject or not str(subject).isdigit():
        raise HTTPException(status_code=401, detail="Invalid token subject")

    user = db.query(User).filter(User.id == int(subject)).first()
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    if user.status != UserStatus.ACTIVE.value:
        raise Forbidden("Account is suspended.")
    return user


def has_role(user: User, roles: tuple[Role, ...]) -> bool:
    allowed = {role.value for role in roles}
    # Super admins pass every admin check.
    if Role.ADMIN in roles:
        allowed.add(Role.SUPERADMIN.value)
    return user.role in allowed


def require_roles(*roles: Role):
    def dependency(current_user: User = Depends(get_current_user)) -> User:
        if not has_role(current_user, roles):
            raise Forbidden("You do not have permission to perform this action.")
        return current_user

    return dependency
