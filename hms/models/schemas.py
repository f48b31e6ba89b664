"""
Pydantic 模式定义
用于 API 请求/响应验证，金额在边界处以 Decimal 表示
数量、金额的业务校验由服务层完成，保证错误分类一致
"""
from datetime import datetime, date
from decimal import Decimal
from typing import Optional, List
from pydantic import BaseModel, Field, ConfigDict, field_validator
from hms.models.ontology import (
    RoomStatus, StayStatus, SportReservationStatus, OrderType, OrderStatus,
    PaymentStatus, PaymentMethod, ServiceMode, TableStatus
)


def to_local_naive(value: Optional[datetime]) -> Optional[datetime]:
    """带时区的时间换算为本地时间并去掉时区，与库内及 datetime.now() 的口径一致"""
    if value is not None and value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


# ============== 住宿 Schemas ==============

class StayBase(BaseModel):
    room_id: int
    client_id: int
    check_in_date: datetime
    check_out_date: datetime
    adults: int = Field(default=1, ge=1)
    children: int = Field(default=0, ge=0)
    notes: Optional[str] = None

    @field_validator('check_in_date', 'check_out_date')
    @classmethod
    def normalize_timezone(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_local_naive(v)


class StayCreate(StayBase):
    total_amount: Optional[Decimal] = None  # 为空时按 晚数 × 房价 计算


class StayUpdate(BaseModel):
    room_id: Optional[int] = None
    check_in_date: Optional[datetime] = None
    check_out_date: Optional[datetime] = None
    adults: Optional[int] = Field(None, ge=1)
    children: Optional[int] = Field(None, ge=0)
    total_amount: Optional[Decimal] = None
    notes: Optional[str] = None

    @field_validator('check_in_date', 'check_out_date')
    @classmethod
    def normalize_timezone(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_local_naive(v)


class StayTransition(BaseModel):
    """入住/退房的实际时刻，为空时取当前时间"""
    actual: Optional[datetime] = None

    @field_validator('actual')
    @classmethod
    def normalize_timezone(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_local_naive(v)


class StayResponse(StayBase):
    id: int
    actual_check_in: Optional[datetime]
    actual_check_out: Optional[datetime]
    total_amount: Decimal
    paid_amount: Decimal
    status: StayStatus
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class RoomResponse(BaseModel):
    id: int
    room_number: str
    floor: Optional[int]
    price_per_night: Decimal
    capacity: int
    status: RoomStatus
    model_config = ConfigDict(from_attributes=True)


# ============== 体育设施预订 Schemas ==============

class SportReservationCreate(BaseModel):
    client_id: int
    facility_id: int
    start_time: datetime
    end_time: datetime
    quantity: int = 1
    stay_id: Optional[int] = None
    notes: Optional[str] = None

    @field_validator('start_time', 'end_time')
    @classmethod
    def normalize_timezone(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_local_naive(v)


class SportReservationUpdate(BaseModel):
    facility_id: Optional[int] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    quantity: Optional[int] = None
    notes: Optional[str] = None

    @field_validator('start_time', 'end_time')
    @classmethod
    def normalize_timezone(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_local_naive(v)


class SportReservationResponse(BaseModel):
    id: int
    client_id: int
    stay_id: Optional[int]
    facility_id: int
    start_time: datetime
    end_time: datetime
    quantity: int
    total: Decimal
    paid_amount: Decimal
    status: SportReservationStatus
    payment_status: PaymentStatus
    service_mode: ServiceMode
    notes: Optional[str]
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class BookedSlot(BaseModel):
    reservation_id: int
    start_time: datetime
    end_time: datetime
    quantity: int
    status: SportReservationStatus


class FacilityAvailability(BaseModel):
    facility_id: int
    day: date
    capacity: int
    peak_booked: int
    slots: List[BookedSlot] = []


# ============== 订单 Schemas ==============

class OrderItemCreate(BaseModel):
    product_id: int
    quantity: int


class OrderItemQuantityUpdate(BaseModel):
    quantity: int


class OrderItemsAdd(BaseModel):
    items: List[OrderItemCreate]


class OrderCreate(BaseModel):
    client_id: int
    items: List[OrderItemCreate]
    stay_id: Optional[int] = None
    service_mode: ServiceMode = ServiceMode.WALK_IN
    pickup_date: Optional[datetime] = None
    delivery_date: Optional[datetime] = None
    notes: Optional[str] = None

    @field_validator('pickup_date', 'delivery_date')
    @classmethod
    def normalize_timezone(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_local_naive(v)


class OrderUpdate(BaseModel):
    service_mode: Optional[ServiceMode] = None
    pickup_date: Optional[datetime] = None
    delivery_date: Optional[datetime] = None
    notes: Optional[str] = None

    @field_validator('pickup_date', 'delivery_date')
    @classmethod
    def normalize_timezone(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_local_naive(v)


class OrderAdvance(BaseModel):
    status: OrderStatus


class OrderItemResponse(BaseModel):
    id: int
    product_id: int
    quantity: int
    unit_price: Decimal
    total: Decimal
    model_config = ConfigDict(from_attributes=True)


class PaymentCreate(BaseModel):
    amount: Decimal
    method: PaymentMethod = PaymentMethod.CASH
    reference: Optional[str] = None
    notes: Optional[str] = None


class PaymentResponse(BaseModel):
    id: int
    amount: Decimal
    method: PaymentMethod
    reference: Optional[str]
    payment_date: datetime
    model_config = ConfigDict(from_attributes=True)


class OrderResponse(BaseModel):
    id: int
    order_type: OrderType
    client_id: int
    stay_id: Optional[int]
    status: OrderStatus
    payment_status: PaymentStatus
    service_mode: ServiceMode
    table_number: Optional[str]
    total: Decimal
    paid_amount: Decimal
    balance: Decimal
    pickup_date: Optional[datetime]
    delivery_date: Optional[datetime]
    notes: Optional[str]
    order_date: datetime
    items: List[OrderItemResponse] = []
    payments: List[PaymentResponse] = []
    model_config = ConfigDict(from_attributes=True)


# ============== 餐桌 Schemas ==============

class RestaurantTableCreate(BaseModel):
    table_number: str = Field(..., max_length=20)
    capacity: int = Field(default=4, ge=1)
    location: Optional[str] = None


class RestaurantTableUpdate(BaseModel):
    table_number: Optional[str] = Field(None, max_length=20)
    capacity: Optional[int] = Field(None, ge=1)
    location: Optional[str] = None
    status: Optional[TableStatus] = None


class TableAssign(BaseModel):
    order_id: int


class RestaurantTableResponse(BaseModel):
    id: int
    table_number: str
    capacity: int
    location: Optional[str]
    status: TableStatus
    current_order_id: Optional[int]
    model_config = ConfigDict(from_attributes=True)
