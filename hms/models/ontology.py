"""
本体对象定义 (Ontology Objects)
房间、客人、住宿、体育设施预订、订单（餐厅/超市/洗衣）、餐桌、支付
金额字段统一以分（整数）存储，通过属性在边界转换为 Decimal
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from sqlalchemy import (
    Column, Integer, String, DateTime, ForeignKey, Text,
    Enum as SQLEnum, CheckConstraint, UniqueConstraint
)
from sqlalchemy.orm import relationship
from hms.database import Base
from hms_core.money import from_cents


# ============== 枚举定义 ==============

class RoomStatus(str, Enum):
    """房间状态枚举（由住宿生命周期维护的投影）"""
    AVAILABLE = "AVAILABLE"        # 空闲
    OCCUPIED = "OCCUPIED"          # 入住中
    MAINTENANCE = "MAINTENANCE"    # 维修中
    RESERVED = "RESERVED"          # 已预留


class StayStatus(str, Enum):
    """住宿状态枚举"""
    CONFIRMED = "confirmed"        # 已确认
    CHECKED_IN = "checked_in"      # 已入住
    CHECKED_OUT = "checked_out"    # 已退房
    CANCELLED = "cancelled"        # 已取消


class SportReservationStatus(str, Enum):
    """体育设施预订状态"""
    PENDING = "PENDING"            # 待确认
    CONFIRMED = "CONFIRMED"        # 已确认
    IN_PROGRESS = "IN_PROGRESS"    # 进行中
    COMPLETED = "COMPLETED"        # 已完成
    CANCELLED = "CANCELLED"        # 已取消


class OrderType(str, Enum):
    """订单类型"""
    RESTAURANT = "RESTAURANT"      # 餐厅
    SUPERMARKET = "SUPERMARKET"    # 超市
    LAUNDRY = "LAUNDRY"            # 洗衣


class OrderStatus(str, Enum):
    """订单状态"""
    PENDING = "PENDING"            # 待处理
    PREPARING = "PREPARING"        # 准备中
    READY = "READY"                # 已就绪
    DELIVERED = "DELIVERED"        # 已送达
    COMPLETED = "COMPLETED"        # 已完成
    CANCELLED = "CANCELLED"        # 已取消


class PaymentStatus(str, Enum):
    """支付状态"""
    PENDING = "PENDING"            # 未支付
    PARTIAL = "PARTIAL"            # 部分支付
    PAID = "PAID"                  # 已付清
    REFUNDED = "REFUNDED"          # 已退款


class PaymentMethod(str, Enum):
    """支付方式"""
    CASH = "CASH"                  # 现金
    CARD = "CARD"                  # 刷卡
    TRANSFER = "TRANSFER"          # 转账
    ROOM_CHARGE = "ROOM_CHARGE"    # 挂房账


class CategoryType(str, Enum):
    """商品分类类型，限制订单可引用的商品"""
    MINIBAR = "MINIBAR"
    RESTAURANT = "RESTAURANT"
    SUPERMARKET = "SUPERMARKET"
    LAUNDRY = "LAUNDRY"
    SPORT = "SPORT"
    BARBER = "BARBER"


class ServiceMode(str, Enum):
    """服务方式"""
    WALK_IN = "WALK_IN"            # 散客
    ROOM_SERVICE = "ROOM_SERVICE"  # 客房送餐
    DELIVERY = "DELIVERY"          # 外送
    HOTEL_GUEST = "HOTEL_GUEST"    # 住店客人


class TableStatus(str, Enum):
    """餐桌状态"""
    AVAILABLE = "AVAILABLE"        # 空闲
    OCCUPIED = "OCCUPIED"          # 使用中
    RESERVED = "RESERVED"          # 已预留


# ============== 公共字段 ==============

class AuditMixin:
    """创建/更新/软删除审计字段"""
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)
    created_by = Column(Integer)
    updated_by = Column(Integer)
    deleted_at = Column(DateTime)                        # 软删除时间
    deleted_by = Column(Integer)                         # 软删除操作人


# ============== 本体对象定义 ==============

class Client(AuditMixin, Base):
    """客人对象"""
    __tablename__ = "clients"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, nullable=False, index=True)  # 租户
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100))
    email = Column(String(100))
    phone = Column(String(20))

    # 链接
    stays = relationship("Stay", back_populates="client")


class Room(AuditMixin, Base):
    """
    房间对象
    status 不是权威数据，由住宿生命周期的每次转换同步
    """
    __tablename__ = "rooms"
    __table_args__ = (
        UniqueConstraint("company_id", "room_number", name="uq_room_number_per_company"),
        CheckConstraint("capacity = 1", name="ck_room_capacity"),
    )

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, nullable=False, index=True)
    room_number = Column(String(10), nullable=False)     # 房间号
    floor = Column(Integer, default=1)                   # 楼层
    price_per_night_cents = Column(Integer, nullable=False, default=0)  # 每晚价格（分）
    capacity = Column(Integer, nullable=False, default=1)
    status = Column(SQLEnum(RoomStatus), default=RoomStatus.AVAILABLE, nullable=False)
    notes = Column(Text)

    # 链接
    stays = relationship("Stay", back_populates="room")

    @property
    def price_per_night(self) -> Decimal:
        return from_cents(self.price_per_night_cents)


class Category(AuditMixin, Base):
    """商品分类"""
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, nullable=False, index=True)
    name = Column(String(100), nullable=False)
    category_type = Column(SQLEnum(CategoryType), nullable=False)

    products = relationship("Product", back_populates="category")


class Product(AuditMixin, Base):
    """
    商品对象
    体育设施是 SPORT 分类下的商品，capacity 为其可同时容纳的数量
    """
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_product_stock_non_negative"),
        CheckConstraint("price_cents >= 0", name="ck_product_price_non_negative"),
        CheckConstraint("capacity IS NULL OR capacity >= 1", name="ck_product_capacity"),
    )

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False)
    name = Column(String(100), nullable=False)
    description = Column(Text)
    price_cents = Column(Integer, nullable=False, default=0)  # 单价（分）
    stock = Column(Integer, nullable=False, default=0)        # 库存
    unit = Column(String(20))
    capacity = Column(Integer)                                # 设施容量，为空时使用配置默认值

    category = relationship("Category", back_populates="products")

    @property
    def price(self) -> Decimal:
        return from_cents(self.price_cents)


class Stay(AuditMixin, Base):
    """
    住宿对象 - 房间占用的聚合根
    [check_in_date, check_out_date) 为半开区间
    """
    __tablename__ = "stays"
    __table_args__ = (
        CheckConstraint("check_in_date < check_out_date", name="ck_stay_range"),
        CheckConstraint("paid_amount_cents >= 0", name="ck_stay_paid_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, nullable=False, index=True)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False)
    check_in_date = Column(DateTime, nullable=False)     # 计划入住时刻
    check_out_date = Column(DateTime, nullable=False)    # 计划退房时刻
    actual_check_in = Column(DateTime)                   # 实际入住时刻
    actual_check_out = Column(DateTime)                  # 实际退房时刻
    adults = Column(Integer, default=1)
    children = Column(Integer, default=0)
    total_amount_cents = Column(Integer, nullable=False, default=0)
    paid_amount_cents = Column(Integer, nullable=False, default=0)
    status = Column(SQLEnum(StayStatus), default=StayStatus.CONFIRMED, nullable=False)
    notes = Column(Text)

    # 链接
    room = relationship("Room", back_populates="stays")
    client = relationship("Client", back_populates="stays")

    @property
    def total_amount(self) -> Decimal:
        return from_cents(self.total_amount_cents)

    @property
    def paid_amount(self) -> Decimal:
        return from_cents(self.paid_amount_cents)


class SportReservation(AuditMixin, Base):
    """
    体育设施预订对象
    quantity 为占用的设施容量
    """
    __tablename__ = "sport_reservations"
    __table_args__ = (
        CheckConstraint("start_time < end_time", name="ck_sport_reservation_range"),
        CheckConstraint("quantity >= 1", name="ck_sport_reservation_quantity"),
        CheckConstraint(
            "paid_amount_cents >= 0 AND paid_amount_cents <= total_cents",
            name="ck_sport_reservation_paid",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, nullable=False, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False)
    stay_id = Column(Integer, ForeignKey("stays.id"))
    facility_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price_cents = Column(Integer, nullable=False, default=0)
    total_cents = Column(Integer, nullable=False, default=0)
    paid_amount_cents = Column(Integer, nullable=False, default=0)
    status = Column(SQLEnum(SportReservationStatus), default=SportReservationStatus.PENDING, nullable=False)
    payment_status = Column(SQLEnum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False)
    service_mode = Column(SQLEnum(ServiceMode), default=ServiceMode.WALK_IN, nullable=False)
    notes = Column(Text)

    # 链接
    client = relationship("Client")
    stay = relationship("Stay")
    facility = relationship("Product")
    payments = relationship("Payment", back_populates="sport_reservation", order_by="Payment.id")

    @property
    def total(self) -> Decimal:
        return from_cents(self.total_cents)

    @property
    def paid_amount(self) -> Decimal:
        return from_cents(self.paid_amount_cents)


class Order(AuditMixin, Base):
    """
    订单对象 - 餐厅/超市/洗衣三种类型结构相同
    不变量：total_cents == Σ item.total_cents，0 <= paid_amount_cents <= total_cents
    """
    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint(
            "paid_amount_cents >= 0 AND paid_amount_cents <= total_cents",
            name="ck_order_paid",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, nullable=False, index=True)
    order_type = Column(SQLEnum(OrderType), nullable=False, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False)
    stay_id = Column(Integer, ForeignKey("stays.id"))
    status = Column(SQLEnum(OrderStatus), default=OrderStatus.PENDING, nullable=False)
    payment_status = Column(SQLEnum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False)
    service_mode = Column(SQLEnum(ServiceMode), default=ServiceMode.WALK_IN, nullable=False)
    table_number = Column(String(20))                    # 餐桌号（冗余展示字段）
    order_date = Column(DateTime, default=datetime.now)
    pickup_date = Column(DateTime)                       # 洗衣取件时间
    delivery_date = Column(DateTime)                     # 洗衣送回时间
    total_cents = Column(Integer, nullable=False, default=0)
    paid_amount_cents = Column(Integer, nullable=False, default=0)
    notes = Column(Text)

    # 链接
    client = relationship("Client")
    stay = relationship("Stay")
    items = relationship(
        "OrderItem", back_populates="order",
        cascade="all, delete-orphan", order_by="OrderItem.id"
    )
    payments = relationship("Payment", back_populates="order", order_by="Payment.id")

    @property
    def total(self) -> Decimal:
        return from_cents(self.total_cents)

    @property
    def paid_amount(self) -> Decimal:
        return from_cents(self.paid_amount_cents)

    @property
    def balance(self) -> Decimal:
        """计算余额"""
        return from_cents(self.total_cents - self.paid_amount_cents)


class OrderItem(Base):
    """订单明细，单价为加入时的商品价格快照"""
    __tablename__ = "order_items"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_order_item_quantity"),
    )

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price_cents = Column(Integer, nullable=False)
    total_cents = Column(Integer, nullable=False)

    order = relationship("Order", back_populates="items")
    product = relationship("Product")

    @property
    def unit_price(self) -> Decimal:
        return from_cents(self.unit_price_cents)

    @property
    def total(self) -> Decimal:
        return from_cents(self.total_cents)


class RestaurantTable(AuditMixin, Base):
    """
    餐桌对象
    current_order_id 与订单上的 table_number 由同一事务的 assign/clear 保持一致
    """
    __tablename__ = "restaurant_tables"
    __table_args__ = (
        UniqueConstraint("company_id", "table_number", name="uq_table_number_per_company"),
        UniqueConstraint("current_order_id", name="uq_table_current_order"),
    )

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, nullable=False, index=True)
    table_number = Column(String(20), nullable=False)
    capacity = Column(Integer, nullable=False, default=4)  # 座位数
    location = Column(String(100))
    status = Column(SQLEnum(TableStatus), default=TableStatus.AVAILABLE, nullable=False)
    current_order_id = Column(Integer, ForeignKey("orders.id"))


class Payment(Base):
    """
    支付记录对象 - 只追加，不修改
    只属于一个订单或一个体育设施预订
    """
    __tablename__ = "payments"
    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="ck_payment_amount_positive"),
        CheckConstraint(
            "(order_id IS NOT NULL AND sport_reservation_id IS NULL) OR "
            "(order_id IS NULL AND sport_reservation_id IS NOT NULL)",
            name="ck_payment_single_target",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, nullable=False, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), index=True)
    sport_reservation_id = Column(Integer, ForeignKey("sport_reservations.id"), index=True)
    amount_cents = Column(Integer, nullable=False)       # 支付金额（分）
    method = Column(SQLEnum(PaymentMethod), nullable=False)
    reference = Column(String(100))                      # 外部流水号
    notes = Column(Text)
    payment_date = Column(DateTime, default=datetime.now)
    created_by = Column(Integer)

    # 链接
    order = relationship("Order", back_populates="payments")
    sport_reservation = relationship("SportReservation", back_populates="payments")

    @property
    def amount(self) -> Decimal:
        return from_cents(self.amount_cents)
