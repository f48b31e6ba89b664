"""
集中定义所有操作码常量
路由层按操作码查询策略表
"""

# 住宿
STAY_READ = "stay:read"
STAY_WRITE = "stay:write"
STAY_CHECKIN = "stay:checkin"
STAY_CHECKOUT = "stay:checkout"
STAY_CANCEL = "stay:cancel"
STAY_DELETE = "stay:delete"

# 体育设施预订
SPORT_READ = "sport:read"
SPORT_WRITE = "sport:write"
SPORT_TRANSITION = "sport:transition"
SPORT_CANCEL = "sport:cancel"
SPORT_PAY = "sport:pay"
SPORT_DELETE = "sport:delete"

# 订单（餐厅/超市/洗衣共用）
ORDER_READ = "order:read"
ORDER_WRITE = "order:write"
ORDER_ADVANCE = "order:advance"
ORDER_PAY = "order:pay"
ORDER_CANCEL = "order:cancel"
ORDER_DELETE = "order:delete"

# 餐桌
TABLE_READ = "table:read"
TABLE_WRITE = "table:write"
TABLE_ASSIGN = "table:assign"
TABLE_DELETE = "table:delete"
