from . import db # Imports the db instance from __init__.py
import datetime
import uuid

COMPLIANCE_FIELDS = ('sesuai_target', 'kepatuhan_cp', 'kepatuhan_penunjang', 'kepatuhan_terapi')
DAY_SLOT_COLUMNS = ('day_1', 'day_2', 'day_3', 'day_4', 'day_5', 'day_6')


class Encounter(db.Model):
    """One admission of a patient under a clinical pathway."""
    __tablename__ = 'clinical_pathways'
    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    patient_name = db.Column(db.String(255), nullable=False)
    record_number = db.Column(db.String(50), nullable=False, index=True) # No. RM
    pathway_type = db.Column(db.String(50), nullable=False, index=True)
    admission_at = db.Column(db.DateTime, nullable=False, index=True)
    discharge_at = db.Column(db.DateTime, nullable=True)
    length_of_stay = db.Column(db.Integer, nullable=True) # Whole days, NULL while inpatient
    dpjp = db.Column(db.String(255), nullable=True) # Attending physician
    verifier = db.Column(db.String(255), nullable=True) # Verifikator pelaksana
    ward = db.Column(db.String(100), nullable=True)
    is_finalized = db.Column(db.Boolean, default=False, nullable=False)
    finalized_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    checklist_items = db.relationship(
        'ChecklistItem',
        backref='encounter',
        lazy='select',
        order_by='ChecklistItem.item_index',
        cascade='all, delete-orphan'
    )
    compliance = db.relationship(
        'ComplianceRecord',
        backref='encounter',
        uselist=False,
        cascade='all, delete-orphan'
    )

    @property
    def is_discharged(self):
        return self.discharge_at is not None

    def to_dict(self, include_checklist=False):
        data = {
            "id": self.id,
            "patient_name": self.patient_name,
            "record_number": self.record_number,
            "pathway_type": self.pathway_type,
            "admission_date": self.admission_at.date().isoformat() if self.admission_at else None,
            "admission_time": self.admission_at.strftime('%H:%M') if self.admission_at else None,
            "discharge_date": self.discharge_at.date().isoformat() if self.discharge_at else None,
            "discharge_time": self.discharge_at.strftime('%H:%M') if self.discharge_at else None,
            "length_of_stay": self.length_of_stay,
            "dpjp": self.dpjp,
            "verifier": self.verifier,
            "ward": self.ward,
            "is_finalized": self.is_finalized,
            "finalized_at": self.finalized_at.isoformat() if self.finalized_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None
        }
        if include_checklist:
            data["checklist"] = [item.to_dict() for item in self.checklist_items]
        return data

    def __repr__(self):
        return f'<Encounter RM: {self.record_number} - {self.pathway_type}>'


class ChecklistItem(db.Model):
    __tablename__ = 'checklist_items'
    __table_args__ = (
        db.UniqueConstraint('encounter_id', 'item_index', name='uq_checklist_item_position'),
    )
    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    encounter_id = db.Column(db.String(36), db.ForeignKey('clinical_pathways.id', ondelete='CASCADE'), nullable=False, index=True)
    item_index = db.Column(db.Integer, nullable=False)
    item_text = db.Column(db.Text, nullable=False)
    day_1 = db.Column(db.Boolean, default=False, nullable=False)
    day_2 = db.Column(db.Boolean, default=False, nullable=False)
    day_3 = db.Column(db.Boolean, default=False, nullable=False)
    day_4 = db.Column(db.Boolean, default=False, nullable=False)
    day_5 = db.Column(db.Boolean, default=False, nullable=False)
    day_6 = db.Column(db.Boolean, default=False, nullable=False)
    variant_notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.datetime.utcnow)

    @property
    def day_flags(self):
        return [bool(getattr(self, column)) for column in DAY_SLOT_COLUMNS]

    @property
    def is_completed(self):
        # A step counts once it was performed on at least one day.
        return any(self.day_flags)

    def to_dict(self):
        data = {
            "id": self.id,
            "encounter_id": self.encounter_id,
            "item_index": self.item_index,
            "item_text": self.item_text,
            "variant_notes": self.variant_notes,
            "is_completed": self.is_completed
        }
        for column in DAY_SLOT_COLUMNS:
            data[column] = bool(getattr(self, column))
        return data

    def __repr__(self):
        return f'<ChecklistItem {self.item_index} for Encounter {self.encounter_id}>'


class ComplianceRecord(db.Model):
    """
    Operator overrides of an encounter's compliance facts.
    A NULL column means the field was never overridden and the derived value applies.
    """
    __tablename__ = 'compliance_data'
    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    encounter_id = db.Column(db.String(36), db.ForeignKey('clinical_pathways.id', ondelete='CASCADE'), nullable=False, unique=True, index=True)
    sesuai_target = db.Column(db.Boolean, nullable=True)
    kepatuhan_cp = db.Column(db.Boolean, nullable=True)
    kepatuhan_penunjang = db.Column(db.Boolean, nullable=True)
    kepatuhan_terapi = db.Column(db.Boolean, nullable=True)
    updated_by = db.Column(db.String(100), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    def overrides(self):
        """Only the fields an operator has actually set."""
        return {field: getattr(self, field) for field in COMPLIANCE_FIELDS if getattr(self, field) is not None}

    def to_dict(self):
        return {
            "id": self.id,
            "encounter_id": self.encounter_id,
            "sesuai_target": self.sesuai_target,
            "kepatuhan_cp": self.kepatuhan_cp,
            "kepatuhan_penunjang": self.kepatuhan_penunjang,
            "kepatuhan_terapi": self.kepatuhan_terapi,
            "updated_by": self.updated_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None
        }

    def __repr__(self):
        return f'<ComplianceRecord for Encounter {self.encounter_id}>'


class ChecklistSummary(db.Model):
    __tablename__ = 'checklist_summary'
    __table_args__ = (
        db.UniqueConstraint('month', 'year', 'pathway_type', name='uq_checklist_summary_window'),
    )
    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    month = db.Column(db.Integer, nullable=False)
    year = db.Column(db.Integer, nullable=False)
    pathway_type = db.Column(db.String(50), nullable=False)
    total_checklist_items = db.Column(db.Integer, default=0, nullable=False)
    completed_items = db.Column(db.Integer, default=0, nullable=False)
    completion_percentage = db.Column(db.Float, default=0.0, nullable=False)
    total_patients = db.Column(db.Integer, default=0, nullable=False)
    data_detail = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "month": self.month,
            "year": self.year,
            "pathway_type": self.pathway_type,
            "total_checklist_items": self.total_checklist_items,
            "completed_items": self.completed_items,
            "completion_percentage": self.completion_percentage,
            "total_patients": self.total_patients,
            "data_detail": self.data_detail,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None
        }

    def __repr__(self):
        return f'<ChecklistSummary {self.month}/{self.year} {self.pathway_type}>'


class MonthlySummary(db.Model):
    """Materialized monthly counts, read by the dashboard when no live encounters exist."""
    __tablename__ = 'monthly_summaries'
    __table_args__ = (
        db.UniqueConstraint('month', 'year', 'pathway_type', name='uq_monthly_summary_window'),
    )
    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    month = db.Column(db.Integer, nullable=False)
    year = db.Column(db.Integer, nullable=False)
    pathway_type = db.Column(db.String(50), nullable=False)
    total_patients = db.Column(db.Integer, default=0, nullable=False)
    sesuai_target_count = db.Column(db.Integer, default=0, nullable=False)
    kepatuhan_cp_count = db.Column(db.Integer, default=0, nullable=False)
    kepatuhan_penunjang_count = db.Column(db.Integer, default=0, nullable=False)
    kepatuhan_terapi_count = db.Column(db.Integer, default=0, nullable=False)
    avg_los = db.Column(db.Float, default=0.0, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "month": self.month,
            "year": self.year,
            "pathway_type": self.pathway_type,
            "total_patients": self.total_patients,
            "sesuai_target_count": self.sesuai_target_count,
            "kepatuhan_cp_count": self.kepatuhan_cp_count,
            "kepatuhan_penunjang_count": self.kepatuhan_penunjang_count,
            "kepatuhan_terapi_count": self.kepatuhan_terapi_count,
            "avg_los": self.avg_los,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None
        }

    def __repr__(self):
        return f'<MonthlySummary {self.month}/{self.year} {self.pathway_type}>'


class AuditLog(db.Model):
    __tablename__ = 'audit_logs'
    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    action = db.Column(db.String(100), nullable=False, index=True)
    target_model = db.Column(db.String(100), nullable=True)
    target_id = db.Column(db.String(36), nullable=True, index=True)
    change_details = db.Column(db.JSON, nullable=True)
    user_id = db.Column(db.String(100), nullable=True)
    ip_address = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)
    timestamp = db.Column(db.DateTime, default=datetime.datetime.utcnow, nullable=False, index=True)

    def to_dict(self):
        return {
            "id": self.id,
            "action": self.action,
            "target_model": self.target_model,
            "target_id": self.target_id,
            "change_details": self.change_details,
            "user_id": self.user_id,
            "ip_address": self.ip_address,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None
        }

    def __repr__(self):
        return f'<AuditLog {self.action} {self.target_model}:{self.target_id}>'
