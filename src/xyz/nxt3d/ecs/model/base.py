from sqlalchemy import BigInteger, String, orm
from sqlalchemy.orm import mapped_column

from typing_extensions import Annotated

address = Annotated[str, 42]
bytes32hex = Annotated[str, 66]
str255 = Annotated[str, 255]
str512 = Annotated[str, 512]
timestamp = Annotated[int, mapped_column(BigInteger, nullable=False)]


class Base(orm.DeclarativeBase):
    type_annotation_map = {
        address: String(42),
        bytes32hex: String(66),
        str255: String(255),
        str512: String(512),
    }
