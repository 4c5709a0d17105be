# File: marketsync/core/sys/exceptions.py
"""
# ==============================================================================
# 模块名称: 系统异常定义 (System Exceptions)
# ==============================================================================
#
# [Purpose / 用途]
# 定义同步引擎的业务异常，用于被 API 层捕获并转换为 StandardResponse。
# code 即对外 HTTP 状态码。
#
# [Architecture / 架构]
# - AppException (Base)
#   - ResourceNotFoundError (404)
#     - PlatformNotFoundError / AccountNotFoundError / OrderNotFoundError
#     - RemoteOrderNotFoundError / StatementNotFoundError
#   - AuthError (401) / PermissionDeniedError (403)
#     - InvalidCredentialsError
#   - ReportTimeoutError (504) / ReportFailedError (502)
#   - PlatformAPIError (502)
#   - VaultError (500)
#     - VaultNotInitializedError / InvalidKeyLengthError / InvalidCiphertextError
#   - AppValidationError (422)
#     - CapabilityNotSupportedError
#
# ==============================================================================
"""
from typing import Any


class AppException(Exception):
    """通用应用异常基类"""
    def __init__(self, message: str, code: int = 400, details: Any = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details


class AuthError(AppException):
    """认证与权限错误"""
    def __init__(self, message: str = "Unauthorized", code: int = 401, details: Any = None):
        super().__init__(message, code=code, details=details)


class PermissionDeniedError(AuthError):
    def __init__(self, message: str = "Permission Denied"):
        super().__init__(message, code=403)


class ResourceNotFoundError(AppException):
    """资源不存在"""
    def __init__(self, message: str = "Resource not found", details: Any = None):
        super().__init__(message, code=404, details=details)


class AppValidationError(AppException):
    """数据校验错误"""
    def __init__(self, message: str = "Validation Failed", details: Any = None):
        super().__init__(message, code=422, details=details)


# --- 平台 / 账户 / 订单 ---

class PlatformNotFoundError(ResourceNotFoundError):
    """平台没有注册适配器"""
    def __init__(self, platform: str):
        super().__init__(f"Platform not supported: {platform}", details={"platform": platform})
        self.platform = platform


class AccountNotFoundError(ResourceNotFoundError):
    def __init__(self, account_id: int):
        super().__init__(f"Account not found: {account_id}", details={"account_id": account_id})


class OrderNotFoundError(ResourceNotFoundError):
    def __init__(self, order_id: int):
        super().__init__(f"Order not found: {order_id}", details={"order_id": order_id})


class RemoteOrderNotFoundError(ResourceNotFoundError):
    """平台未返回该订单"""
    def __init__(self, platform_order_no: str):
        super().__init__(f"Platform did not return order {platform_order_no}",
                         details={"platform_order_no": platform_order_no})


class StatementNotFoundError(ResourceNotFoundError):
    def __init__(self, statement_id: int):
        super().__init__(f"Cash flow statement not found: {statement_id}", details={"statement_id": statement_id})


class CapabilityNotSupportedError(AppValidationError):
    """平台适配器不具备该能力 (如现金流报表)"""
    def __init__(self, platform: str, capability: str):
        super().__init__(f"Platform {platform} does not support {capability}",
                         details={"platform": platform, "capability": capability})


class InvalidCredentialsError(AuthError):
    """凭证无法解密 / 格式错误 / 平台拒绝认证"""
    def __init__(self, message: str = "Invalid credentials", details: Any = None):
        super().__init__(message, code=401, details=details)


class PlatformAPIError(AppException):
    """平台返回非 2xx"""
    def __init__(self, message: str, status_code: int = None, body: str = None):
        super().__init__(message, code=502, details={"status_code": status_code, "body": body})
        self.status_code = status_code
        self.body = body


# --- 异步报表 ---

class ReportTimeoutError(AppException):
    """报表轮询次数耗尽仍未完成"""
    def __init__(self, report_code: str, attempts: int):
        super().__init__(
            f"Report {report_code} not ready after {attempts} polls",
            code=504,
            details={"report_code": report_code, "attempts": attempts},
        )
        self.report_code = report_code
        self.attempts = attempts


class ReportFailedError(AppException):
    """平台报告生成失败"""
    def __init__(self, report_code: str, platform_error: str = ""):
        super().__init__(
            f"Report {report_code} failed: {platform_error}",
            code=502,
            details={"report_code": report_code, "error": platform_error},
        )
        self.report_code = report_code
        self.platform_error = platform_error


# --- 凭证加密 ---

class VaultError(AppException):
    def __init__(self, message: str):
        super().__init__(message, code=500)


class VaultNotInitializedError(VaultError):
    def __init__(self, message: str = "Credential vault is not initialized"):
        super().__init__(message)


class InvalidKeyLengthError(VaultError):
    def __init__(self, length: int):
        super().__init__(f"Encryption key must be 32 bytes, got {length}")
        self.length = length


class InvalidCiphertextError(VaultError):
    def __init__(self, message: str = "Ciphertext is malformed or failed authentication"):
        super().__init__(message)
