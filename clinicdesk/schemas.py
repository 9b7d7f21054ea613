# clinicdesk/schemas.py
from pydantic import BaseModel, EmailStr, ConfigDict, Field, field_validator
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Union
from datetime import date, datetime, time

from . import errors
from .clock import as_local
from .models import Gender

MOBILE_PATTERN = r"^[0-9]{10,15}$"
PASSWORD_MIN_LENGTH = 8
# bcrypt ignores input past 72 bytes
PASSWORD_MAX_BYTES = 72


def check_password_strength(password: str) -> str:
    if len(password) < PASSWORD_MIN_LENGTH:
        raise ValueError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters")
    if len(password.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise ValueError(f"Password must be at most {PASSWORD_MAX_BYTES} bytes")
    return password


# --- Base Configuration ---
class BaseSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True, ser_json_bytes="base64")


class PartialUpdate(BaseModel):
    """
    Edit payload: fields left out are untouched, fields sent as null are cleared.
    Columns listed in required_fields cannot be cleared.
    """
    model_config = ConfigDict(use_enum_values=True)
    required_fields: ClassVar[Tuple[str, ...]] = ()

    def apply_to(self, obj, exclude=()) -> Dict[str, Any]:
        changes = self.model_dump(exclude_unset=True, exclude=set(exclude))
        for field, value in changes.items():
            if value is None and field in self.required_fields:
                raise errors.ValidationError(f"{field} cannot be empty")
        for field, value in changes.items():
            setattr(obj, field, value)
        return changes


class Message(BaseModel):
    message: str


# --- Patient Schemas ---
class PatientBase(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    name: str = Field(min_length=2, max_length=100)
    mobile_number: str = Field(pattern=MOBILE_PATTERN)
    address: str = Field(min_length=1)
    email: Optional[EmailStr] = None
    date_of_birth: date
    blood_group: str = Field(min_length=1, max_length=5)
    gender: Gender


class AppointmentCreate(BaseModel):
    """Schema used to book a visit for an existing patient."""
    reason: str = Field(min_length=2, max_length=100)
    process: str = Field(min_length=1)
    date: datetime

    @field_validator("date")
    @classmethod
    def to_clinic_time(cls, value: datetime) -> datetime:
        return as_local(value)


class PatientCreate(PatientBase, AppointmentCreate):
    """A new patient plus their first appointment."""


class PatientBrief(BaseSchema):
    id: int
    name: str
    mobile_number: str


class Patient(BaseSchema):
    id: int
    patient_id: str
    name: str
    mobile_number: str
    address: str
    email: Optional[str] = None
    date_of_birth: date
    age: Optional[int] = None
    blood_group: str
    gender: str
    toxicity: bool


# --- Appointment Schemas ---
class Appointment(BaseSchema):
    """Full appointment details for API responses (document bytes excluded)."""
    id: int
    patient_id: int
    reason: str
    date: datetime
    process: str
    fees: int
    status: Optional[str] = None
    payment_status: str
    payment_mode: Optional[str] = None
    document_type: Optional[str] = None
    parameters: Optional[Dict[str, Any]] = None
    note: Optional[str] = None
    investigation: Optional[str] = None
    prescription: Optional[List[Any]] = None
    follow_up: Optional[date] = None
    created_at: Optional[datetime] = None


class AppointmentWithPatient(Appointment):
    patient: Patient


class PatientWithAppointments(Patient):
    appointments: List[Appointment] = []


class ExtraChargesRequest(BaseModel):
    charges: int


class PaymentModeRequest(BaseModel):
    payment_mode: str


class ParametersRequest(BaseModel):
    parameters: Dict[str, Any]


class DocumentRequest(BaseModel):
    base64_image: str  # data:<mime>;base64,<payload>


class PrescriptionRequest(BaseModel):
    prescription: Any = None


class SubmitAppointmentRequest(BaseModel):
    fees: Optional[Union[int, float, str]] = None
    follow_up: Optional[date] = None
    note: Optional[str] = Field(default=None, max_length=255)
    investigation: Optional[str] = Field(default=None, max_length=255)


class StatusRequest(BaseModel):
    status: str


class AppointmentEnvelope(BaseModel):
    message: str
    appointment: Appointment


class NewPatientResponse(BaseModel):
    message: str
    appointment: Appointment
    patient: Patient


# --- Receptionist Schemas ---
class DocumentUpload(BaseModel):
    content_type: str = Field(min_length=1)
    data: str  # base64 payload


class ReceptionistCreate(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    name: str = Field(min_length=2, max_length=100)
    mobile_number: str = Field(pattern=MOBILE_PATTERN)
    address: str = Field(min_length=1)
    email: EmailStr
    age: Optional[int] = Field(default=None, ge=0)
    date_of_joining: date
    gender: Gender
    qualification: str = Field(min_length=1)
    password: str
    documents: List[DocumentUpload] = Field(min_length=1)

    @field_validator("password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        return check_password_strength(value)


class ReceptionistUpdate(PartialUpdate):
    required_fields: ClassVar[Tuple[str, ...]] = (
        "name", "mobile_number", "address", "date_of_joining", "gender", "qualification",
    )

    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    mobile_number: Optional[str] = Field(default=None, pattern=MOBILE_PATTERN)
    address: Optional[str] = Field(default=None, min_length=1)
    age: Optional[int] = Field(default=None, ge=0)
    date_of_joining: Optional[date] = None
    gender: Optional[Gender] = None
    qualification: Optional[str] = Field(default=None, min_length=1)
    documents: Optional[List[DocumentUpload]] = None


class ReceptionistDocument(BaseSchema):
    id: int
    content_type: str
    document: bytes


class Receptionist(BaseSchema):
    id: int
    receptionist_id: str
    doctor_id: int
    name: str
    mobile_number: str
    address: str
    email: str
    age: Optional[int] = None
    date_of_joining: date
    gender: str
    qualification: str


class ReceptionistDetail(Receptionist):
    documents: List[ReceptionistDocument] = []


class ReceptionistListItem(BaseModel):
    id: int
    receptionist_id: str
    name: str
    date_of_joining: date
    availability_status: str


# --- Attendance Schemas ---
class Attendance(BaseSchema):
    id: int
    date: date
    check_in_time: datetime
    check_out_time: Optional[datetime] = None


class AttendanceEntry(BaseModel):
    date: str
    check_in_time: str
    check_out_time: str
    status: str


class AttendanceHistory(BaseModel):
    attendance_history: List[AttendanceEntry]


class AttendanceStats(BaseModel):
    total_attendance: int
    avg_check_in_time: Optional[str] = None
    avg_check_out_time: Optional[str] = None
    receptionist: Receptionist


# --- Doctor Schemas ---
class Doctor(BaseSchema):
    id: int
    doctor_id: str
    name: str
    clinic_name: str
    mobile_number: str
    address: str
    email: str
    date_of_birth: Optional[date] = None
    age: Optional[int] = None
    gender: str
    medical_licence_number: str
    registration_authority: str
    date_of_registration: str
    medical_degree: str
    government_id: str
    accepted_terms: bool = False
    fees: Optional[float] = None
    check_in_time: Optional[time] = None
    check_out_time: Optional[time] = None


class DoctorRegister(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    name: str = Field(min_length=2, max_length=100)
    clinic_name: str = Field(min_length=2, max_length=100)
    mobile_number: str = Field(pattern=MOBILE_PATTERN)
    address: str = Field(min_length=1)
    email: EmailStr
    password: str
    date_of_birth: Optional[date] = None
    gender: Gender
    medical_licence_number: str = Field(min_length=1, max_length=100)
    registration_authority: str = Field(min_length=1, max_length=100)
    date_of_registration: str = Field(min_length=1, max_length=50)
    medical_degree: str = Field(min_length=1, max_length=100)
    government_id: str = Field(min_length=1, max_length=100)

    @field_validator("password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        return check_password_strength(value)


class DoctorRegistered(BaseModel):
    message: str
    doctor: Doctor


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class LoginResponse(BaseModel):
    message: str
    token: str
    role: str
    tenant_id: int
    accepted_terms: bool


class ChangePasswordRequest(BaseModel):
    old_password: str = Field(min_length=1)
    new_password: str

    @field_validator("new_password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        return check_password_strength(value)


class DoctorUpdate(PartialUpdate):
    required_fields: ClassVar[Tuple[str, ...]] = (
        "name", "clinic_name", "mobile_number", "address", "gender",
        "medical_licence_number", "registration_authority", "date_of_registration",
        "medical_degree", "government_id",
    )

    name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    clinic_name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    mobile_number: Optional[str] = Field(default=None, pattern=MOBILE_PATTERN)
    address: Optional[str] = Field(default=None, min_length=1)
    date_of_birth: Optional[date] = None
    gender: Optional[Gender] = None
    medical_licence_number: Optional[str] = None
    registration_authority: Optional[str] = None
    date_of_registration: Optional[str] = None
    medical_degree: Optional[str] = None
    government_id: Optional[str] = None


class FeesRequest(BaseModel):
    fees: Optional[Union[int, float, str]] = None


class ClinicHoursRequest(BaseModel):
    check_in_time: Optional[time] = None
    check_out_time: Optional[time] = None


class ClinicHours(BaseModel):
    check_in_time: Optional[time] = None
    check_out_time: Optional[time] = None


# --- Medicine Schemas ---
class MedicineCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    strength: str = Field(min_length=1, max_length=50)
    form: str = Field(min_length=1, max_length=50)
    category: str = Field(min_length=1, max_length=50)
    brand: str = Field(min_length=1, max_length=100)


class MedicineUpdate(PartialUpdate):
    required_fields: ClassVar[Tuple[str, ...]] = ("name", "strength", "form", "category", "brand")

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    strength: Optional[str] = Field(default=None, min_length=1, max_length=50)
    form: Optional[str] = Field(default=None, min_length=1, max_length=50)
    category: Optional[str] = Field(default=None, min_length=1, max_length=50)
    brand: Optional[str] = Field(default=None, min_length=1, max_length=100)


class Medicine(BaseSchema):
    id: int
    name: str
    strength: str
    form: str
    category: str
    brand: str


# --- Dashboard Schemas ---
class TodayStats(BaseModel):
    total_appointments: int
    total_completed_appointments: int
    total_pending_appointments: int


class AgeGroups(BaseModel):
    young_count: int
    adult_count: int
    senior_count: int


class GenderPercentages(BaseModel):
    male_percentage: float
    female_percentage: float
    other_percentage: float


class MonthlyRevenue(BaseModel):
    revenue: int


class YearlyRevenue(BaseModel):
    year: int
    monthly_revenue: List[int]
