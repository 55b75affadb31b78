from __future__ import annotations

from datetime import date

from sqlalchemy import Boolean, Date, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


class ExpenseCategory(Base):
    """Budget line ("partida") an article is charged to."""

    __tablename__ = "expense_category"

    code: Mapped[str] = mapped_column(String(30), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)


class Article(Base):
    __tablename__ = "article"

    code: Mapped[str] = mapped_column(String(50), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    unit: Mapped[str | None] = mapped_column(String(30), nullable=True)
    brand: Mapped[str | None] = mapped_column(String(100), nullable=True)
    available_qty: Mapped[float] = mapped_column(Numeric(14, 2, asdecimal=False), nullable=False, default=0)
    unit_price: Mapped[float] = mapped_column(Numeric(14, 2, asdecimal=False), nullable=False, default=0)
    expense_code: Mapped[str | None] = mapped_column(
        ForeignKey("expense_category.code"), nullable=True
    )


class Installation(Base):
    """Municipal installation a request is raised for."""

    __tablename__ = "installation"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)


class Person(Base):
    """Collaborator who authorizes or withdraws issued material."""

    __tablename__ = "person"

    identification: Mapped[str] = mapped_column(String(30), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    alias: Mapped[str | None] = mapped_column(String(100), nullable=True)
    authorized: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class MaterialRequest(Base):
    __tablename__ = "material_request"

    number: Mapped[str] = mapped_column(String(30), primary_key=True)
    request_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    department: Mapped[str | None] = mapped_column(String(255), nullable=True)
    maintenance_area: Mapped[str | None] = mapped_column(String(255), nullable=True)
    installation_id: Mapped[int | None] = mapped_column(
        ForeignKey("installation.id"), nullable=True
    )

    installation: Mapped[Installation | None] = relationship("Installation")


class Issue(Base):
    """Header of a warehouse issuance ("salida")."""

    __tablename__ = "issue"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    issued_on: Mapped[date] = mapped_column(Date, nullable=False)
    request_number: Mapped[str | None] = mapped_column(
        ForeignKey("material_request.number"), nullable=True
    )
    withdrawn_by: Mapped[str | None] = mapped_column(
        ForeignKey("person.identification"), nullable=True
    )
    authorized_by: Mapped[str | None] = mapped_column(String(30), nullable=True)


class IssueLine(Base):
    __tablename__ = "issue_line"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    issue_id: Mapped[int] = mapped_column(ForeignKey("issue.id"), nullable=False)
    article_code: Mapped[str] = mapped_column(ForeignKey("article.code"), nullable=False)
    quantity: Mapped[float] = mapped_column(Numeric(14, 2, asdecimal=False), nullable=False)
    unit_price: Mapped[float] = mapped_column(Numeric(14, 2, asdecimal=False), nullable=False, default=0)
    subtotal: Mapped[float] = mapped_column(Numeric(14, 2, asdecimal=False), nullable=False, default=0)

    issue: Mapped[Issue] = relationship("Issue")
