from loanportal.core.errors import ForbiddenError
from loanportal.core.roles import Capability, Role, has_capability
from loanportal.models.loan_application import LoanApplication
from loanportal.models.user import User


def role_of(user: User) -> Role:
    return Role(user.role)


def check_capability(user: User, capability: Capability | str) -> bool:
    if not user.is_active:
        return False
    return has_capability(user.role, capability)


def is_owner(user: User, application: LoanApplication) -> bool:
    return str(application.user_id) == str(user.id)


def can_view_application(user: User, application: LoanApplication) -> bool:
    role = role_of(user)
    if role is Role.ADMIN:
        return True
    if role is Role.DSA:
        return application.is_assigned_to(user.id)
    return is_owner(user, application)


def ensure_can_view_application(user: User, application: LoanApplication) -> None:
    if not can_view_application(user, application):
        raise ForbiddenError("You do not have access to this application")


def ensure_can_update_status(user: User, application: LoanApplication) -> None:
    """Admins, or DSAs assigned to the application; applicants never."""
    if not check_capability(user, Capability.APPLICATION_UPDATE_STATUS):
        raise ForbiddenError("Only admins or assigned DSAs can update application status")
    if role_of(user) is Role.DSA and not application.is_assigned_to(user.id):
        raise ForbiddenError("DSA is not assigned to this application")


def ensure_owner_or_admin(user: User, application: LoanApplication) -> None:
    if role_of(user) is Role.ADMIN or is_owner(user, application):
        return
    raise ForbiddenError("Only the applicant or an admin can modify documents")
