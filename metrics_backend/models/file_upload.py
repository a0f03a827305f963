import uuid

from sqlalchemy import ForeignKey, Integer, LargeBinary, String
from sqlalchemy.orm import Mapped, mapped_column

from metrics_backend.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class FileUpload(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    __tablename__ = "file_uploads"
    __text_search_fields__ = ("file_name", "username", "file_extension")

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    username: Mapped[str] = mapped_column(String(20), nullable=False)
    uploaded_file: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    file_extension: Mapped[str] = mapped_column(String(8), nullable=False)
    file_name: Mapped[str] = mapped_column(String(256), nullable=False)
    file_size: Mapped[int] = mapped_column(Integer, nullable=False)
    file_mime_type: Mapped[str] = mapped_column(String(128), nullable=False)
    file_encoding: Mapped[str] = mapped_column(String(32), nullable=False, default="base64")
    associated_document_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True, index=True)

    def __repr__(self) -> str:
        return f"<FileUpload {self.file_name}>"
