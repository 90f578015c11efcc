# taxonomy_admin/models/admin.py

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from .base import BaseModel, db


class AdminLog(BaseModel):
    """Audit trail of administrative actions"""

    __tablename__ = "admin_logs"

    id = db.Column(db.Integer, primary_key=True)
    admin_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    action = db.Column(db.String(100), nullable=False, index=True)
    details = db.Column(db.Text, nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(500), nullable=True)

    admin_user = db.relationship("User", foreign_keys=[admin_user_id])

    def __repr__(self):
        return f"<AdminLog {self.action} by user {self.admin_user_id}>"

    @staticmethod
    def log_action(admin_user_id, action, details=None, ip_address=None, user_agent=None):
        """Persist an audit entry; returns False instead of raising on failure"""
        try:
            entry = AdminLog(
                admin_user_id=admin_user_id,
                action=action,
                details=details,
                ip_address=ip_address,
                user_agent=user_agent,
            )
            db.session.add(entry)
            db.session.commit()
            return True
        except SQLAlchemyError as e:
            db.session.rollback()
            current_app.logger.error(f"Error logging admin action {action}: {str(e)}")
            return False
