# rt_intel/models.py
from .init import db
from datetime import datetime

STATUS_MONITORING = "monitoring"
STATUS_SCHEDULED = "scheduled"
STATUS_PUBLISHED = "published"
STATUSES = (STATUS_MONITORING, STATUS_SCHEDULED, STATUS_PUBLISHED)

DEFAULT_CATEGORY = "عام"
DEFAULT_SEVERITY = "متوسط"


class Article(db.Model):
    # AUTOINCREMENT keeps ids from being reused after deletes
    __table_args__ = {"sqlite_autoincrement": True}

    id              = db.Column(db.Integer, primary_key=True)
    url             = db.Column(db.String(1000), nullable=False, default="")
    original_title  = db.Column(db.Text, nullable=True)
    original_body   = db.Column(db.Text, nullable=True)
    title           = db.Column(db.Text, nullable=False, default="")
    body            = db.Column(db.Text, nullable=False, default="")
    image_url       = db.Column(db.String(2000), nullable=True)
    image_base64    = db.Column(db.Text, nullable=True)
    category        = db.Column(db.String(120), nullable=False, default=DEFAULT_CATEGORY)
    severity        = db.Column(db.String(120), nullable=False, default=DEFAULT_SEVERITY)
    created_at      = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    status          = db.Column(db.String(20), nullable=False, default=STATUS_MONITORING)
    scheduled_at    = db.Column(db.String(5), nullable=True)

    def to_dict(self, include_image_data=False):
        data = {
            "id": self.id,
            "url": self.url,
            "originalTitle": self.original_title,
            "title": self.title,
            "body": self.body,
            "imageUrl": self.image_url or "",
            "hasEmbeddedImage": bool(self.image_base64),
            "category": self.category,
            "severity": self.severity,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "status": self.status,
            "scheduledAt": self.scheduled_at,
        }
        if include_image_data:
            data["imageBase64"] = self.image_base64 or ""
        return data

    def __repr__(self):
        return f"<Article {self.id} {self.status} {self.scheduled_at or '-'}>"


class NewsSource(db.Model):
    id              = db.Column(db.Integer, primary_key=True)
    name            = db.Column(db.String(200), nullable=False)
    url             = db.Column(db.String(1000), nullable=False)
    is_active       = db.Column(db.Boolean, default=True, nullable=False)

    def to_dict(self):
        return {"id": self.id, "name": self.name, "url": self.url, "isActive": self.is_active}


class Setting(db.Model):
    """Key/value blob, the value is serialized JSON."""
    key             = db.Column(db.String(100), primary_key=True)
    value           = db.Column(db.Text, nullable=False, default="null")
