"""
File: identity_bridge/domains/bridge/constants.py
Description: 映射桥领域常量定义 (错误码 + 访问描述符 + 操作名)
Namespace: bridge.*

Created: 2026-10-18
"""

from enum import StrEnum

from starlette.status import HTTP_400_BAD_REQUEST

from identity_bridge.core.access import ObjectDescriptor
from identity_bridge.core.error_code import BaseErrorCode

# ==============================================================================
# 1. 错误码定义 (Error Codes)
# ==============================================================================


class BridgeError(BaseErrorCode):
    """
    映射桥领域错误定义
    Tuple Structure: (HTTP_Status, Code_String, Default_Message)
    """

    # 输入形状校验 (Validation Gate)，每种写操作一个错误类别
    LOG_FIELDS_REQUIRED = (
        HTTP_400_BAD_REQUEST,
        "bridge.log_fields_required",
        "provider_name, principal_id, log_id and message are required",
    )
    LOGIN_HISTORY_FIELDS_REQUIRED = (
        HTTP_400_BAD_REQUEST,
        "bridge.login_history_fields_required",
        "provider_name, principal_id, flow_type and login_at are required",
    )
    MAPPING_FIELDS_REQUIRED = (
        HTTP_400_BAD_REQUEST,
        "bridge.mapping_fields_required",
        "provider_name and principal_id are required",
    )
    INVALID_FLOW_TYPE = (
        HTTP_400_BAD_REQUEST,
        "bridge.invalid_flow_type",
        "flow_type must be Initial or Refresh",
    )

    # Facade
    UNSUPPORTED_OPERATION = (
        HTTP_400_BAD_REQUEST,
        "bridge.unsupported_operation",
        "Unsupported operation",
    )
    INVALID_ARGUMENTS = (
        HTTP_400_BAD_REQUEST,
        "bridge.invalid_arguments",
        "Invalid arguments for operation",
    )


class BridgeMsg:
    """
    映射桥领域成功提示文案
    """

    INVOKE_SUCCESS = "Operation completed"
    MAPPINGS_PROCESSED = "Mappings processed"
    EVENTS_DELIVERED = "Pending events delivered"


# 触发器为无效 provider 附加的逐条错误文案
PROVIDER_NOT_FOUND_ERROR = "Unknown auth provider: {value}"


class LoginFlow(StrEnum):
    INITIAL = "Initial"
    REFRESH = "Refresh"


# ==============================================================================
# 2. Facade 操作名 (对外稳定契约)
# ==============================================================================


class BridgeOperation(StrEnum):
    INSERT_LOG = "insertLog"
    CHECK_USER_MAPPING_EXISTS = "checkUserMappingExists"
    UPDATE_MAPPING_LOGIN_DETAILS = "updateMappingLoginDetails"
    GET_SUBJECT_FROM_USER_MAPPING = "getSubjectFromUserMapping"
    GET_AUTH_USER_DATA_FROM_COOKIE_HEADER = "getAuthUserDataFromCookieHeader"
    INSERT_LOGIN_HISTORY_RECORD = "insertLoginHistoryRecord"


# ==============================================================================
# 3. 访问描述符 (Access Gate 所需的对象 + 字段)
# ==============================================================================

# 发布侧：变更事件对象
LOG_EVENT = ObjectDescriptor(
    "MappingLogEvent", ("provider_name", "principal_id", "log_id", "message")
)
LOGIN_HISTORY_EVENT = ObjectDescriptor(
    "LoginHistoryEvent",
    (
        "provider_name",
        "principal_id",
        "flow_type",
        "login_at",
        "success",
        "provider_type",
        "login_info",
    ),
)
MAPPING_TOUCH_EVENT = ObjectDescriptor("MappingTouchEvent", ("provider_name", "principal_id"))

# 消费侧：持久化对象
MAPPING_LOG_CREATE = ObjectDescriptor(
    "MappingLog", ("provider_name", "principal_id", "log_id", "message")
)
LOGIN_HISTORY_CREATE = ObjectDescriptor(
    "LoginHistory",
    (
        "provider_name",
        "principal_id",
        "flow_type",
        "login_at",
        "success",
        "provider_type",
        "login_info",
    ),
)
MAPPING_LOG_REFERENCE_UPDATE = ObjectDescriptor("UserMapping", ("last_log_reference",))
MAPPING_LOGIN_UPDATE = ObjectDescriptor("UserMapping", ("last_login_at", "login_count"))

# 读取侧：映射查询涉及的字段 (字段级读权限)
MAPPING_READ = ObjectDescriptor(
    "UserMapping",
    (
        "provider_name",
        "principal_id",
        "target_identifier",
        "last_log_reference",
        "last_login_at",
        "login_count",
    ),
)

# 管理侧：映射创建/修改
MAPPING_CREATE = ObjectDescriptor(
    "UserMapping", ("provider_name", "principal_id", "target_identifier")
)

# 运维侧：强制投递待处理事件
EVENT_DELIVERY = ObjectDescriptor("ChangeEventChannel")
