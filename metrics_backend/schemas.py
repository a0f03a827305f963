"""
Pydantic schemas for request / response serialization.

Wire format is camelCase; Python attributes are snake_case.  Schemas
are deliberately decoupled from SQLAlchemy models so the API surface
can evolve independently of the DB layer.  `CamelModel.to_columns`
produces constructor kwargs for a model: top-level snake_case names,
nested payloads dumped in their camelCase wire shape.
"""

import re
import uuid
from typing import Annotated, Any, Literal

from pydantic import (
    AfterValidator,
    Base64Bytes,
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from metrics_backend.core.config import settings
from metrics_backend.core.enumerations import require_member
from metrics_backend.services.document_update import ARRAY_OPERATORS, FIELD_OPERATORS

USERNAME_REGEX = re.compile(r"^(?=.{3,20}$)(?![-_.])(?!.*[-_.]{2})[a-zA-Z0-9-_.]+(?<![-_.])$")
PASSWORD_REGEX = re.compile(r"^(?=.*[A-Z])(?=.*[a-z])(?=.*[0-9])(?=.*[!@#$%^&*])(?!.*\s).{8,32}$")
NAME_REGEX = re.compile(r"^[A-Za-z\s.\-']{2,100}$")
CITY_REGEX = re.compile(r"^[A-Za-z\s.\-']{2,75}$")
YEAR_REGEX = re.compile(r"^\d{4}$")
DAY_REGEX = re.compile(r"^(0[1-9]|[12]\d|3[01])$")


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_columns(self) -> dict[str, Any]:
        columns: dict[str, Any] = {}
        for name in type(self).model_fields:
            columns[name] = _wire(getattr(self, name))
        return columns


def _wire(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True, mode="json")
    if isinstance(value, list):
        return [_wire(item) for item in value]
    return value


# ── Envelope ─────────────────────────────────────────────────────────
class HttpResult(CamelModel):
    access_token: str = ""
    data: list[Any] = Field(default_factory=list)
    kind: Literal["error", "success"] = "success"
    message: str = "Successful operation"
    pages: int = 0
    status: int = 200
    total_documents: int = 0
    trigger_logout: bool = False


# ── Document updates ─────────────────────────────────────────────────
class DocumentUpdate(CamelModel):
    update_kind: Literal["field", "array"]
    update_operator: str
    fields: dict[str, Any]

    @model_validator(mode="after")
    def _operator_matches_kind(self) -> "DocumentUpdate":
        allowed = FIELD_OPERATORS if self.update_kind == "field" else ARRAY_OPERATORS
        if self.update_operator not in allowed:
            raise ValueError(f"'{self.update_operator}' is not a {self.update_kind} update operator")
        return self


class UpdateRequest(CamelModel):
    document_update: DocumentUpdate


class DeleteManyRequest(CamelModel):
    filter: dict[str, Any] = Field(default_factory=dict)


# ── Field types ──────────────────────────────────────────────────────
def _check_username(value: str) -> str:
    if not USERNAME_REGEX.match(value):
        raise ValueError(
            "must be 3-20 characters of letters, digits, '-', '_' or '.', "
            "without leading, trailing or repeated separators"
        )
    return value


def _check_password(value: str) -> str:
    if not PASSWORD_REGEX.match(value):
        raise ValueError(
            "must be 8-32 characters with an uppercase letter, a lowercase letter, "
            "a digit and one of !@#$%^&*, and no whitespace"
        )
    return value


def _check_name(value: str) -> str:
    if not NAME_REGEX.match(value):
        raise ValueError("must be 2-100 letters, spaces or . - '")
    return value


def _check_city(value: str) -> str:
    if not CITY_REGEX.match(value):
        raise ValueError("must be 2-75 letters, spaces or . - '")
    return value


def _check_roles(value: list[str]) -> list[str]:
    for role in value:
        require_member(role, "userRoles")
    return list(dict.fromkeys(value))


def _check_year(value: str) -> str:
    if not YEAR_REGEX.match(value):
        raise ValueError("year must be four digits")
    return value


def _check_day(value: str) -> str:
    if not DAY_REGEX.match(value):
        raise ValueError("day must be two digits between 01 and 31")
    return value


def _member_of(name: str) -> AfterValidator:
    return AfterValidator(lambda value: require_member(value, name))


Username = Annotated[str, AfterValidator(_check_username)]
Password = Annotated[str, AfterValidator(_check_password)]
PersonName = Annotated[str, AfterValidator(_check_name)]
City = Annotated[str, AfterValidator(_check_city)]
Roles = Annotated[list[str], AfterValidator(_check_roles)]
Department = Annotated[str, _member_of("departments")]
JobPosition = Annotated[str, _member_of("jobPositions")]
StoreLocation = Annotated[str, _member_of("allStoreLocations")]
ProductCategory = Annotated[str, _member_of("productCategories")]
RepairCategory = Annotated[str, _member_of("repairCategories")]
Year = Annotated[str, AfterValidator(_check_year)]
Month = Annotated[str, _member_of("months")]
Day = Annotated[str, AfterValidator(_check_day)]


# ── Users ────────────────────────────────────────────────────────────
class UserProfile(CamelModel):
    first_name: PersonName | None = None
    last_name: PersonName | None = None
    address_line: str | None = Field(default=None, max_length=256)
    city: City | None = None
    province: str | None = None
    state: str | None = None
    country: str | None = None
    postal_code: str | None = Field(default=None, max_length=16)
    department: Department | None = None
    job_position: JobPosition | None = None
    store_location: StoreLocation | None = None
    org_id: int | None = None
    parent_org_id: int | None = None
    profile_picture_url: str | None = None
    file_upload_id: uuid.UUID | None = None


class UserCreate(UserProfile):
    username: Username
    email: EmailStr
    password: Password
    roles: Roles = Field(default_factory=lambda: ["Employee"])


class UserUpdate(UserProfile):
    model_config = ConfigDict(extra="forbid")

    username: Username | None = None
    email: EmailStr | None = None
    password: Password | None = None
    roles: Roles | None = None


class RegisterSchema(UserProfile):
    """Self-registration: roles are not client-controlled."""

    username: Username
    email: EmailStr
    password: Password


class RegisterRequest(CamelModel):
    schema_: RegisterSchema = Field(alias="schema")


class CreateUserRequest(CamelModel):
    schema_: UserCreate = Field(alias="schema")


class LoginCredentials(CamelModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class LoginRequest(CamelModel):
    schema_: LoginCredentials = Field(alias="schema")


# ── Username / email registry ───────────────────────────────────────
class UsernameEmailSetCreate(CamelModel):
    username: list[str] = Field(default_factory=list)
    email: list[str] = Field(default_factory=list)


class CreateUsernameEmailSetRequest(CamelModel):
    schema_: UsernameEmailSetCreate = Field(alias="schema")


class UsernameEmailCheck(CamelModel):
    username: str | None = None
    email: str | None = None

    @model_validator(mode="after")
    def _one_field(self) -> "UsernameEmailCheck":
        if (self.username is None) == (self.email is None):
            raise ValueError("provide exactly one of username or email")
        return self


class UsernameEmailCheckRequest(CamelModel):
    fields: UsernameEmailCheck


# ── File uploads ─────────────────────────────────────────────────────
class FileUploadCreate(CamelModel):
    uploaded_file: Base64Bytes
    file_extension: str
    file_name: str = Field(min_length=1, max_length=256)
    file_mime_type: str = Field(min_length=1, max_length=128)
    file_encoding: str = "base64"
    associated_document_id: uuid.UUID | None = None

    @field_validator("file_extension")
    @classmethod
    def _extension(cls, value: str) -> str:
        value = value.lower().lstrip(".")
        if value not in settings.ALLOWED_FILE_EXTENSIONS:
            raise ValueError(f"file extension must be one of {', '.join(settings.ALLOWED_FILE_EXTENSIONS)}")
        return value


class CreateFileUploadRequest(CamelModel):
    schema_: FileUploadCreate = Field(alias="schema")


class FileUploadUpdate(CamelModel):
    model_config = ConfigDict(extra="forbid")

    file_name: str | None = None
    associated_document_id: uuid.UUID | None = None


# ── Metrics: shared ──────────────────────────────────────────────────
class _StoreScoped(CamelModel):
    store_location: StoreLocation = "All Locations"


# ── Metrics: financial ───────────────────────────────────────────────
class SalesBreakdown(CamelModel):
    total: float = 0
    in_store: float = 0
    online: float = 0


class FinancialBreakdown(CamelModel):
    total: float = 0
    repair: float = 0
    sales: SalesBreakdown = Field(default_factory=SalesBreakdown)


class FinancialSnapshot(CamelModel):
    average_order_value: float = 0
    conversion_rate: float = 0
    net_profit_margin: float = 0
    expenses: FinancialBreakdown = Field(default_factory=FinancialBreakdown)
    profit: FinancialBreakdown = Field(default_factory=FinancialBreakdown)
    revenue: FinancialBreakdown = Field(default_factory=FinancialBreakdown)
    transactions: FinancialBreakdown = Field(default_factory=FinancialBreakdown)


class DailyFinancialMetric(FinancialSnapshot):
    day: Day


class MonthlyFinancialMetric(FinancialSnapshot):
    month: Month
    daily_metrics: list[DailyFinancialMetric] = Field(default_factory=list)


class YearlyFinancialMetric(FinancialSnapshot):
    year: Year
    monthly_metrics: list[MonthlyFinancialMetric] = Field(default_factory=list)


class FinancialMetricsCreate(_StoreScoped):
    financial_metrics: list[YearlyFinancialMetric] = Field(default_factory=list)


# ── Metrics: product ─────────────────────────────────────────────────
class ChannelSplit(CamelModel):
    in_store: float = 0
    online: float = 0


class ProductSnapshot(CamelModel):
    revenue: ChannelSplit = Field(default_factory=ChannelSplit)
    units_sold: ChannelSplit = Field(default_factory=ChannelSplit)


class DailyProductMetric(ProductSnapshot):
    day: Day


class MonthlyProductMetric(ProductSnapshot):
    month: Month
    daily_metrics: list[DailyProductMetric] = Field(default_factory=list)


class YearlyProductMetric(ProductSnapshot):
    year: Year
    monthly_metrics: list[MonthlyProductMetric] = Field(default_factory=list)


class ProductMetricsCreate(_StoreScoped):
    name: ProductCategory = "All Products"
    user_id: uuid.UUID | None = None
    yearly_metrics: list[YearlyProductMetric] = Field(default_factory=list)


# ── Metrics: repair ──────────────────────────────────────────────────
class RepairSnapshot(CamelModel):
    revenue: float = 0
    units_repaired: float = 0


class DailyRepairMetric(RepairSnapshot):
    day: Day


class MonthlyRepairMetric(RepairSnapshot):
    month: Month
    daily_metrics: list[DailyRepairMetric] = Field(default_factory=list)


class YearlyRepairMetric(RepairSnapshot):
    year: Year
    monthly_metrics: list[MonthlyRepairMetric] = Field(default_factory=list)


class RepairMetricsCreate(_StoreScoped):
    metric_category: RepairCategory = "All Repairs"
    yearly_metrics: list[YearlyRepairMetric] = Field(default_factory=list)


# ── Metrics: customer ────────────────────────────────────────────────
class CustomerChannels(CamelModel):
    repair: float = 0
    sales: SalesBreakdown = Field(default_factory=SalesBreakdown)


class CustomersSnapshot(CamelModel):
    churn_rate: float = 0
    retention_rate: float = 0
    new: CustomerChannels = Field(default_factory=CustomerChannels)
    returning: CustomerChannels = Field(default_factory=CustomerChannels)
    total: float = 0


class DailyCustomerMetric(CamelModel):
    day: Day
    customers: CustomersSnapshot = Field(default_factory=CustomersSnapshot)


class MonthlyCustomerMetric(CamelModel):
    month: Month
    customers: CustomersSnapshot = Field(default_factory=CustomersSnapshot)
    daily_metrics: list[DailyCustomerMetric] = Field(default_factory=list)


class YearlyCustomerMetric(CamelModel):
    year: Year
    customers: CustomersSnapshot = Field(default_factory=CustomersSnapshot)
    monthly_metrics: list[MonthlyCustomerMetric] = Field(default_factory=list)


class CustomerMetricsBody(CamelModel):
    lifetime_value: float = 0
    total_customers: float = 0
    yearly_metrics: list[YearlyCustomerMetric] = Field(default_factory=list)


class CustomerMetricsCreate(_StoreScoped):
    customer_metrics: CustomerMetricsBody = Field(default_factory=CustomerMetricsBody)


# ── Metrics: updates ─────────────────────────────────────────────────
class FinancialMetricsUpdate(FinancialMetricsCreate):
    model_config = ConfigDict(extra="forbid")
    store_location: StoreLocation | None = None


class ProductMetricsUpdate(ProductMetricsCreate):
    model_config = ConfigDict(extra="forbid")
    name: ProductCategory | None = None
    store_location: StoreLocation | None = None


class RepairMetricsUpdate(RepairMetricsCreate):
    model_config = ConfigDict(extra="forbid")
    metric_category: RepairCategory | None = None
    store_location: StoreLocation | None = None


class CustomerMetricsUpdate(CustomerMetricsCreate):
    model_config = ConfigDict(extra="forbid")
    store_location: StoreLocation | None = None


class CreateFinancialMetricsRequest(CamelModel):
    schema_: FinancialMetricsCreate = Field(alias="schema")


class CreateProductMetricsRequest(CamelModel):
    schema_: ProductMetricsCreate = Field(alias="schema")


class CreateRepairMetricsRequest(CamelModel):
    schema_: RepairMetricsCreate = Field(alias="schema")


class CreateCustomerMetricsRequest(CamelModel):
    schema_: CustomerMetricsCreate = Field(alias="schema")
