# 数据库连接配置
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
import os
import logging
from typing import Generator, Optional

logger = logging.getLogger(__name__)

# 数据库连接配置
DATABASE_HOST = os.getenv("DATABASE_HOST", "localhost")
DATABASE_PORT = os.getenv("DATABASE_PORT", "3306")
DATABASE_USER = os.getenv("DATABASE_USER", "root")
DATABASE_PASSWORD = os.getenv("DATABASE_PASSWORD", "")
DATABASE_NAME = os.getenv("DATABASE_NAME", "school_gradebook")

# 完整 DATABASE_URL 优先（例如测试时使用 sqlite）
DATABASE_URL = os.getenv("DATABASE_URL") or (
    f"mysql+pymysql://{DATABASE_USER}:{DATABASE_PASSWORD}"
    f"@{DATABASE_HOST}:{DATABASE_PORT}/{DATABASE_NAME}"
    "?charset=utf8mb4"
)

# 创建声明性基类
Base = declarative_base()

_engine: Optional[Engine] = None
_session_factory = None


def get_engine() -> Engine:
    """延迟创建数据库引擎，导入本模块不需要数据库"""
    global _engine
    if _engine is None:
        options = {'pool_pre_ping': True, 'echo': False}
        if DATABASE_URL.startswith('mysql'):
            options.update({
                'pool_size': 10,
                'max_overflow': 20,
                'pool_recycle': 3600,
            })
        _engine = create_engine(DATABASE_URL, **options)
        logger.info(f"已创建数据库引擎: {_engine.url.render_as_string(hide_password=True)}")
    return _engine


def get_session_factory():
    """获取会话工厂"""
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(autocommit=False, autoflush=False, bind=get_engine())
    return _session_factory


def get_db() -> Generator:
    """获取数据库会话"""
    db = get_session_factory()()
    try:
        yield db
    except Exception as e:
        logger.error(f"Database session error: {str(e)}")
        db.rollback()
        raise
    finally:
        db.close()


def test_connection() -> bool:
    """测试数据库连接"""
    try:
        with get_engine().connect() as connection:
            connection.execute(text("SELECT 1"))
            logger.info("Database connection successful")
            return True
    except Exception as e:
        logger.error(f"Database connection failed: {str(e)}")
        return False


def create_tables():
    """创建所有表"""
    try:
        Base.metadata.create_all(bind=get_engine())
        logger.info("All tables created successfully")
    except Exception as e:
        logger.error(f"Failed to create tables: {str(e)}")
        raise
