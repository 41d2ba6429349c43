from ethiomaids import db
from ethiomaids.models.columns import JSONType, new_id, utcnow, isoformat

class PlatformSettings(db.Model):
    """Single-row settings used by the WhatsApp assistant and public pages"""
    __tablename__ = 'platform_settings'

    id = db.Column(db.String(36), primary_key=True, default=new_id)

    platform_name = db.Column(db.String(255), nullable=False, default='Ethio Maids')
    support_email = db.Column(db.String(255))
    support_phone = db.Column(db.String(20))
    whatsapp_number = db.Column(db.String(20))
    business_hours = db.Column(db.String(255))
    auto_response_enabled = db.Column(db.Boolean, default=True)
    about_text = db.Column(db.Text)

    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    EDITABLE_FIELDS = (
        'platform_name', 'support_email', 'support_phone', 'whatsapp_number',
        'business_hours', 'auto_response_enabled', 'about_text'
    )

    def to_dict(self):
        return {
            'id': self.id,
            'platform_name': self.platform_name,
            'support_email': self.support_email,
            'support_phone': self.support_phone,
            'whatsapp_number': self.whatsapp_number,
            'business_hours': self.business_hours,
            'auto_response_enabled': self.auto_response_enabled,
            'about_text': self.about_text,
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at)
        }

    def __repr__(self):
        return f'<PlatformSettings {self.platform_name}>'


class SystemSetting(db.Model):
    """Key/value operational setting (fees, feature switches)"""
    __tablename__ = 'system_settings'

    key = db.Column(db.String(100), primary_key=True)
    value = db.Column(JSONType)
    description = db.Column(db.Text)
    updated_by = db.Column(db.String(128))
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    @classmethod
    def get_value(cls, key, default=None):
        setting = db.session.get(cls, key)
        if setting is None or setting.value is None:
            return default
        return setting.value

    def to_dict(self):
        return {
            'key': self.key,
            'value': self.value,
            'description': self.description,
            'updated_by': self.updated_by,
            'updated_at': isoformat(self.updated_at)
        }

    def __repr__(self):
        return f'<SystemSetting {self.key}>'
