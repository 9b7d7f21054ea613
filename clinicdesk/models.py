# clinicdesk/models.py
import enum
from decimal import Decimal

from sqlalchemy import (
    Column, Integer, String, Boolean, Date, DateTime, ForeignKey, Time, Text,
    Numeric, LargeBinary, JSON, UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .database import Base
from .clock import age_on, local_now


class Role(str, enum.Enum):
    DOCTOR = "doctor"
    RECEPTIONIST = "receptionist"


class AppointmentStatus(str, enum.Enum):
    IN = "in"
    OUT = "out"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentMode(str, enum.Enum):
    CASH = "Cash"
    ONLINE = "Online"


class Gender(str, enum.Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


# Largest amounts the fee columns hold: Numeric(10, 2) and a 32-bit Integer
MAX_DOCTOR_FEES = Decimal("99999999.99")
MAX_APPOINTMENT_FEES = 2_147_483_647


# --- 1. DOCTORS (tenant root) ---
class Doctor(Base):
    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True, index=True)
    doctor_id = Column(String(20), unique=True, index=True, nullable=False)
    name = Column(String(100), nullable=False)
    clinic_name = Column(String(100), nullable=False)
    mobile_number = Column(String(15), nullable=False)
    address = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    accepted_terms = Column(Boolean, default=False, nullable=False)
    date_of_birth = Column(Date, nullable=True)
    gender = Column(String(10), nullable=False)
    medical_licence_number = Column(String(100), nullable=False)
    registration_authority = Column(String(100), nullable=False)
    date_of_registration = Column(String(50), nullable=False)
    medical_degree = Column(String(100), nullable=False)
    government_id = Column(String(100), nullable=False)

    fees = Column(Numeric(10, 2), nullable=True)
    check_in_time = Column(Time, nullable=True)
    check_out_time = Column(Time, nullable=True)

    created_at = Column(DateTime, default=local_now)

    receptionists = relationship("Receptionist", back_populates="doctor", cascade="all, delete-orphan")
    patients = relationship("Patient", back_populates="doctor", cascade="all, delete-orphan")
    medicines = relationship("Medicine", back_populates="doctor", cascade="all, delete-orphan")

    @property
    def age(self):
        return age_on(self.date_of_birth, local_now().date())


# --- 2. RECEPTIONISTS ---
class Receptionist(Base):
    __tablename__ = "receptionists"

    id = Column(Integer, primary_key=True, index=True)
    receptionist_id = Column(String(20), unique=True, index=True, nullable=False)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    mobile_number = Column(String(15), nullable=False)
    address = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    age = Column(Integer, nullable=True)
    date_of_joining = Column(Date, nullable=False)
    gender = Column(String(10), nullable=False)
    qualification = Column(Text, nullable=False)
    created_at = Column(DateTime, default=local_now)

    doctor = relationship("Doctor", back_populates="receptionists")
    attendances = relationship("Attendance", back_populates="receptionist", cascade="all, delete-orphan")
    documents = relationship("ReceptionistDocument", back_populates="receptionist", cascade="all, delete-orphan")


class ReceptionistDocument(Base):
    __tablename__ = "receptionist_documents"

    id = Column(Integer, primary_key=True, index=True)
    receptionist_id = Column(Integer, ForeignKey("receptionists.id"), nullable=False, index=True)
    document = Column(LargeBinary, nullable=False)
    content_type = Column(String(100), nullable=False)
    created_at = Column(DateTime, default=local_now)

    receptionist = relationship("Receptionist", back_populates="documents")


# --- 3. ATTENDANCE (one row per receptionist per day) ---
class Attendance(Base):
    __tablename__ = "attendances"
    __table_args__ = (
        UniqueConstraint("receptionist_id", "date", name="uq_attendance_receptionist_date"),
    )

    id = Column(Integer, primary_key=True, index=True)
    receptionist_id = Column(Integer, ForeignKey("receptionists.id"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    check_in_time = Column(DateTime, nullable=False)
    check_out_time = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=local_now)

    receptionist = relationship("Receptionist", back_populates="attendances")


# --- 4. PATIENTS ---
class Patient(Base):
    __tablename__ = "patients"

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(String(20), unique=True, index=True, nullable=False)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False, index=True)
    name = Column(String(100), index=True, nullable=False)
    mobile_number = Column(String(15), nullable=False)
    address = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    date_of_birth = Column(Date, nullable=False)
    blood_group = Column(String(5), nullable=False)
    gender = Column(String(10), nullable=False)
    toxicity = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=local_now)

    doctor = relationship("Doctor", back_populates="patients")
    appointments = relationship(
        "Appointment", back_populates="patient", order_by="Appointment.date", cascade="all, delete-orphan",
    )

    @property
    def age(self):
        return age_on(self.date_of_birth, local_now().date())


# --- 5. APPOINTMENTS ---
class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    reason = Column(String(100), nullable=False)
    date = Column(DateTime, nullable=False, index=True)
    process = Column(String(100), nullable=False)
    fees = Column(Integer, nullable=False, default=0)

    # None -> "in" -> "out"
    status = Column(String(3), nullable=True, index=True)
    payment_status = Column(String(10), nullable=False, default=PaymentStatus.PENDING.value)
    payment_mode = Column(String(10), nullable=True)

    document = Column(LargeBinary, nullable=True)
    document_type = Column(String(100), nullable=True)
    parameters = Column(JSON, nullable=True)
    note = Column(String(255), nullable=True)
    investigation = Column(String(255), nullable=True)
    prescription = Column(JSON, nullable=True)
    follow_up = Column(Date, nullable=True)

    created_at = Column(DateTime, default=local_now)
    updated_at = Column(DateTime, default=local_now, onupdate=local_now)

    patient = relationship("Patient", back_populates="appointments")

    def __repr__(self):
        return f"<Appointment {self.id} patient={self.patient_id} status={self.status} on {self.date}>"


# --- 6. MEDICINES ---
class Medicine(Base):
    __tablename__ = "medicines"

    id = Column(Integer, primary_key=True, index=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False, index=True)
    name = Column(String(100), index=True, nullable=False)
    strength = Column(String(50), nullable=False)
    form = Column(String(50), nullable=False)
    category = Column(String(50), nullable=False)
    brand = Column(String(100), nullable=False)
    created_at = Column(DateTime, default=local_now)

    doctor = relationship("Doctor", back_populates="medicines")
