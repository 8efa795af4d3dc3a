from app.models.base import TokenBase


class DoctorRegisterToken(TokenBase, table=True):
    __tablename__ = "doctor_register_tokens"
