from sqlalchemy.orm import DeclarativeBase, declared_attr

class Base(DeclarativeBase):
    """SQLAlchemy 声明性基类"""

    # 自动生成表名
    @declared_attr.directive
    def __tablename__(cls) -> str:
        return cls.__name__.lower()
