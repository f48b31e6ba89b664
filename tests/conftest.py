"""
Pytest 配置和共享 fixtures
"""
import pytest
from datetime import datetime, timedelta, time
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from hms.database import Base, build_engine, get_db
from hms.models import ontology  # noqa
from hms.models.ontology import (
    Client, Room, RoomStatus, Category, CategoryType, Product,
    RestaurantTable, TableStatus
)
from hms.main import app

COMPANY_ID = 1
OTHER_COMPANY_ID = 2
USER_ID = 7


@pytest.fixture(scope="function")
def db_engine():
    """创建内存数据库引擎（与生产相同的 SQLite 写锁配置）"""
    engine = build_engine("sqlite:///:memory:", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine):
    """创建数据库会话"""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture(scope="function")
def client(db_session):
    """创建测试客户端"""
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# ============== 请求头 Fixtures ==============

@pytest.fixture
def manager_headers():
    """经理请求头"""
    return {"X-Company-Id": str(COMPANY_ID), "X-User-Id": str(USER_ID), "X-User-Role": "MANAGER"}


@pytest.fixture
def staff_headers():
    """普通员工请求头"""
    return {"X-Company-Id": str(COMPANY_ID), "X-User-Id": "8", "X-User-Role": "STAFF"}


@pytest.fixture
def admin_headers():
    """管理员请求头"""
    return {"X-Company-Id": str(COMPANY_ID), "X-User-Id": "1", "X-User-Role": "ADMIN"}


# ============== 时间 Fixtures ==============

@pytest.fixture
def base_day():
    """未来某天零点，避免用例受当前时间影响"""
    return datetime.combine((datetime.now() + timedelta(days=30)).date(), time.min)


# ============== 实体 Fixtures ==============

@pytest.fixture
def sample_client(db_session):
    """创建测试客人"""
    guest = Client(company_id=COMPANY_ID, first_name="张", last_name="三", phone="13800138000")
    db_session.add(guest)
    db_session.commit()
    db_session.refresh(guest)
    return guest


@pytest.fixture
def sample_client_2(db_session):
    """创建第二位客人"""
    guest = Client(company_id=COMPANY_ID, first_name="李", last_name="四", phone="13900139000")
    db_session.add(guest)
    db_session.commit()
    db_session.refresh(guest)
    return guest


@pytest.fixture
def sample_room(db_session):
    """创建测试房间，每晚 288.00"""
    room = Room(
        company_id=COMPANY_ID,
        room_number="101",
        floor=1,
        price_per_night_cents=28800,
        status=RoomStatus.AVAILABLE
    )
    db_session.add(room)
    db_session.commit()
    db_session.refresh(room)
    return room


@pytest.fixture
def sample_room_102(db_session):
    """创建102房间"""
    room = Room(
        company_id=COMPANY_ID,
        room_number="102",
        floor=1,
        price_per_night_cents=38800,
        status=RoomStatus.AVAILABLE
    )
    db_session.add(room)
    db_session.commit()
    db_session.refresh(room)
    return room


def _category(db_session, category_type: CategoryType) -> Category:
    category = Category(company_id=COMPANY_ID, name=category_type.value.title(),
                        category_type=category_type)
    db_session.add(category)
    db_session.commit()
    db_session.refresh(category)
    return category


def _product(db_session, category: Category, name: str, price_cents: int,
             stock: int = 0, capacity=None) -> Product:
    product = Product(
        company_id=COMPANY_ID,
        category_id=category.id,
        name=name,
        price_cents=price_cents,
        stock=stock,
        capacity=capacity,
    )
    db_session.add(product)
    db_session.commit()
    db_session.refresh(product)
    return product


@pytest.fixture
def restaurant_category(db_session):
    return _category(db_session, CategoryType.RESTAURANT)


@pytest.fixture
def supermarket_category(db_session):
    return _category(db_session, CategoryType.SUPERMARKET)


@pytest.fixture
def laundry_category(db_session):
    return _category(db_session, CategoryType.LAUNDRY)


@pytest.fixture
def sport_category(db_session):
    return _category(db_session, CategoryType.SPORT)


@pytest.fixture
def dish_x(db_session, restaurant_category):
    """餐厅商品 X，单价 10.00，库存 10"""
    return _product(db_session, restaurant_category, "宫保鸡丁", 1000, stock=10)


@pytest.fixture
def dish_y(db_session, restaurant_category):
    """餐厅商品 Y，单价 5.00，库存 10"""
    return _product(db_session, restaurant_category, "米饭", 500, stock=10)


@pytest.fixture
def snack(db_session, supermarket_category):
    """超市商品，单价 3.50，不扣库存"""
    return _product(db_session, supermarket_category, "矿泉水", 350)


@pytest.fixture
def shirt_wash(db_session, laundry_category):
    """洗衣服务，单价 15.00"""
    return _product(db_session, laundry_category, "衬衫洗烫", 1500)


@pytest.fixture
def tennis_court(db_session, sport_category):
    """网球场，容量 1，每场 80.00"""
    return _product(db_session, sport_category, "网球场", 8000, capacity=1)


@pytest.fixture
def swimming_pool(db_session, sport_category):
    """泳池，容量 3，每人 30.00"""
    return _product(db_session, sport_category, "泳池", 3000, capacity=3)


@pytest.fixture
def sample_table(db_session):
    """创建测试餐桌"""
    table = RestaurantTable(company_id=COMPANY_ID, table_number="A1", capacity=4,
                            status=TableStatus.AVAILABLE)
    db_session.add(table)
    db_session.commit()
    db_session.refresh(table)
    return table
