"""
数据库配置 - SQLAlchemy 持久化层
每个对外操作在一个事务内完成：冲突检查与写入在同一事务中，资源行加锁直到提交
"""
import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker, declarative_base

from hms.config import settings

logger = logging.getLogger(__name__)


def configure_sqlite_locking(engine: Engine) -> None:
    """
    SQLite 不支持 SELECT ... FOR UPDATE
    改为在事务开始时执行 BEGIN IMMEDIATE，提前获取写锁，使并发的检查-写入串行化
    """
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # 关闭 pysqlite 自带的隐式 BEGIN，由下面的 begin 事件接管
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(url: str, **kwargs) -> Engine:
    """按 URL 创建引擎，SQLite 自动启用事务级写锁"""
    is_sqlite = url.startswith("sqlite")
    if is_sqlite:
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    engine = create_engine(url, echo=settings.SQL_ECHO, **kwargs)
    if is_sqlite:
        configure_sqlite_locking(engine)
    return engine


engine = build_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """依赖注入：获取数据库会话"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def atomic(db: Session) -> Iterator[Session]:
    """
    原子操作：成功提交，任何异常回滚后重新抛出

    业务校验在写入前全部完成，失败时不会留下部分修改。
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


def init_db():
    """初始化数据库表"""
    from hms.models import ontology  # noqa
    Base.metadata.create_all(bind=engine)
    logger.info(f"Database initialized: {engine.url.render_as_string(hide_password=True)}")
