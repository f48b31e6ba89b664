"""
业务异常分类
继承 ValueError，沿用服务层 raise ValueError / 路由层转换 HTTP 状态码的约定
"""


class HospitalityError(ValueError):
    """业务异常基类"""

    status_code = 400
    code = "error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(HospitalityError):
    """引用的实体不存在或不属于当前租户"""

    status_code = 404
    code = "not_found"


class InvalidStateError(HospitalityError):
    """当前生命周期状态不允许该操作"""

    status_code = 400
    code = "invalid_state"


class ConflictError(HospitalityError):
    """区间重叠、容量不足、唯一字段重复"""

    status_code = 409
    code = "conflict"


class InvalidInputError(HospitalityError):
    """非法区间、非正数量或金额、库存不足"""

    status_code = 400
    code = "invalid_input"


class ForbiddenError(HospitalityError):
    """角色策略拒绝，或存在引用时禁止删除"""

    status_code = 403
    code = "forbidden"
