from enum import Enum


class Role(str, Enum):
    ADMIN = "admin"
    DSA = "dsa"
    USER = "user"


class Capability(str, Enum):
    # Applications
    APPLICATION_SUBMIT = "application.submit"
    APPLICATION_VIEW_OWN = "application.view_own"
    APPLICATION_VIEW_ASSIGNED = "application.view_assigned"
    APPLICATION_VIEW_ALL = "application.view_all"
    APPLICATION_UPDATE_STATUS = "application.update_status"
    APPLICATION_ASSIGN = "application.assign"
    APPLICATION_REVIEW = "application.review"
    APPLICATION_SELECT_DSA = "application.select_dsa"

    # Documents
    DOCUMENT_UPLOAD = "document.upload"
    DOCUMENT_DELETE = "document.delete"

    # Dashboards
    NOTIFICATION_VIEW = "notification.view"
    STATISTICS_VIEW = "statistics.view"

    # Support / chat
    SUPPORT_CREATE = "support.create"
    SUPPORT_MANAGE = "support.manage"
    SUPPORT_ASSIGN = "support.assign"
    SUPPORT_DELETE = "support.delete"
    CHAT_PARTICIPATE = "chat.participate"
    CHAT_VIEW_ALL = "chat.view_all"

    # Users / admin
    PROFILE_VIEW_OTHERS = "profile.view_others"
    USER_MANAGE = "user.manage"
    USER_VERIFY = "user.verify"
    SYSTEM_LOG_VIEW = "system_log.view"


_COMMON = {
    Capability.NOTIFICATION_VIEW,
    Capability.STATISTICS_VIEW,
    Capability.SUPPORT_CREATE,
    Capability.CHAT_PARTICIPATE,
}

ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.ADMIN: frozenset(Capability)
    - {Capability.APPLICATION_SUBMIT, Capability.APPLICATION_SELECT_DSA, Capability.APPLICATION_REVIEW},
    Role.DSA: frozenset(
        _COMMON
        | {
            Capability.APPLICATION_VIEW_ASSIGNED,
            Capability.APPLICATION_UPDATE_STATUS,
            Capability.APPLICATION_REVIEW,
            Capability.SUPPORT_MANAGE,
            Capability.PROFILE_VIEW_OTHERS,
        }
    ),
    Role.USER: frozenset(
        _COMMON
        | {
            Capability.APPLICATION_SUBMIT,
            Capability.APPLICATION_VIEW_OWN,
            Capability.APPLICATION_SELECT_DSA,
            Capability.DOCUMENT_UPLOAD,
            Capability.DOCUMENT_DELETE,
        }
    ),
}

assert set(ROLE_CAPABILITIES) == set(Role), "every role needs a capability row"


def capabilities_for(role: Role | str) -> frozenset[Capability]:
    return ROLE_CAPABILITIES.get(Role(role), frozenset())


def has_capability(role: Role | str, capability: Capability | str) -> bool:
    try:
        code = Capability(capability)
    except ValueError:
        return False
    return code in capabilities_for(role)
