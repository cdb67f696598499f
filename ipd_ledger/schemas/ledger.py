# FILE: ipd_ledger/schemas/ledger.py
from __future__ import annotations
from datetime import date, datetime
from typing import Optional, Literal
from pydantic import BaseModel, Field, ConfigDict, model_validator, field_validator

NoteCategory = Literal["general", "medication", "vital_signs", "treatment",
                       "observation", "incident"]

# Author and timestamp fields are never part of an *In schema: the server
# assigns them. Unknown keys in a payload are ignored.


class BloodPressureIn(BaseModel):
    systolic: int = Field(..., ge=40, le=300)
    diastolic: int = Field(..., ge=20, le=200)

    @model_validator(mode="after")
    def validate_pair(self) -> "BloodPressureIn":
        if self.diastolic >= self.systolic:
            raise ValueError("diastolic must be lower than systolic")
        return self


class VitalsIn(BaseModel):
    blood_pressure: Optional[BloodPressureIn] = None
    heart_rate: Optional[int] = Field(None, ge=20, le=300)
    temperature: Optional[float] = Field(None, ge=25, le=45)  # deg C
    respiratory_rate: Optional[int] = Field(None, ge=4, le=80)
    oxygen_saturation: Optional[int] = Field(None, ge=50, le=100)
    notes: Optional[str] = ""

    @model_validator(mode="after")
    def validate_any_measurement(self) -> "VitalsIn":
        measured = (self.blood_pressure, self.heart_rate, self.temperature,
                    self.respiratory_rate, self.oxygen_saturation)
        if all(v is None for v in measured):
            raise ValueError("at least one vital sign is required")
        return self


class MedicationIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    medication: str = Field(..., min_length=1, max_length=200)
    dosage: str = Field(..., min_length=1, max_length=100)
    frequency: str = Field(..., min_length=1, max_length=100)
    start_date: Optional[date] = None  # defaults to the day of recording
    end_date: Optional[date] = None
    notes: Optional[str] = ""

    @field_validator("end_date")
    @classmethod
    def validate_end_date(cls, v, info):
        start = info.data.get("start_date")
        if v is not None and start is not None and v < start:
            raise ValueError("end_date must be >= start_date")
        return v


class NursingNoteIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    category: NoteCategory = "general"
    note: str = Field(..., min_length=1)


class DiagnosisIn(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    condition: str = Field(..., min_length=1, max_length=255)
    notes: Optional[str] = ""


# ---------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------


class VitalsOut(BaseModel):
    id: int
    episode_id: int
    seq: int
    recorded_by: int
    recorded_by_name: Optional[str] = None
    recorded_date: datetime
    blood_pressure: Optional[dict] = None
    heart_rate: Optional[int] = None
    temperature: Optional[float] = None
    respiratory_rate: Optional[int] = None
    oxygen_saturation: Optional[int] = None
    notes: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class MedicationOut(BaseModel):
    id: int
    episode_id: int
    seq: int
    prescribed_by: int
    prescribed_by_name: Optional[str] = None
    prescribed_date: datetime
    medication: str
    dosage: str
    frequency: str
    start_date: date
    end_date: Optional[date] = None
    notes: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class NursingNoteOut(BaseModel):
    id: int
    episode_id: int
    seq: int
    recorded_by: int
    recorded_by_name: Optional[str] = None
    recorded_date: datetime
    category: str
    note: str

    model_config = ConfigDict(from_attributes=True)


class DiagnosisOut(BaseModel):
    id: int
    episode_id: int
    seq: int
    diagnosed_by: int
    diagnosed_by_name: Optional[str] = None
    diagnosed_date: datetime
    condition: str
    notes: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
