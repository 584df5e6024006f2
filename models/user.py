""" Represents a user of the sync service.

Users authenticate with a username and password to obtain a bearer token.
The role decides what a user can see: admins can read every sync log entry,
collectors and members only the entries they created.
"""

from werkzeug.security import generate_password_hash, check_password_hash
from database import db


class User(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    password_hash = db.Column(db.Text)
    role = db.Column(db.String(80), nullable=False, default='member')
    name = db.Column(db.String(80), nullable=False)
    email = db.Column(db.String(80), unique=True, nullable=False)

    sync_logs = db.relationship("GitSyncLog", back_populates="user", lazy="dynamic")

    ADMIN = 'admin'
    COLLECTOR = 'collector'
    MEMBER = 'member'
    ROLES = (ADMIN, COLLECTOR, MEMBER)

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    @property
    def is_admin(self) -> bool:
        return self.role == self.ADMIN

    def __repr__(self):
        return f"<User {self.id}>"
