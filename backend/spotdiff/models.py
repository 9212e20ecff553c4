from spotdiff import db
import json


class Level(db.Model):
    __tablename__ = 'level'
    id = db.Column(db.Integer, primary_key=True)
    slug = db.Column(db.String(64), unique=True, nullable=False, index=True)
    name = db.Column(db.String(128), nullable=False)
    description = db.Column(db.Text, nullable=True)
    original_image = db.Column(db.String(256), nullable=True)
    modified_image = db.Column(db.String(256), nullable=True)
    # Round overrides; NULL falls back to the app defaults
    time_limit = db.Column(db.Integer, nullable=True)
    points_per_hit = db.Column(db.Integer, nullable=True)
    penalty_per_miss = db.Column(db.Integer, nullable=True)
    bonus_per_second = db.Column(db.Integer, nullable=True)
    position = db.Column(db.Integer, default=0, nullable=False)
    differences = db.Column(db.Text, nullable=False, default='[]')  # JSON-encoded list of difference records

    def get_differences(self):
        try:
            items = json.loads(self.differences) if self.differences else []
        except ValueError:
            items = []
        return items if isinstance(items, list) else []

    def set_differences(self, items):
        self.differences = json.dumps(list(items))

    def to_meta(self):
        return {
            'id': self.slug,
            'name': self.name,
        }

    def to_dict(self):
        return {
            'id': self.slug,
            'name': self.name,
            'description': self.description,
            'originalImage': self.original_image,
            'modifiedImage': self.modified_image,
            'timeLimit': self.time_limit,
            'pointsPerHit': self.points_per_hit,
            'penaltyPerMiss': self.penalty_per_miss,
            'bonusPerSecond': self.bonus_per_second,
            'differences': self.get_differences(),
        }


class StoredValue(db.Model):
    __tablename__ = 'stored_value'
    key = db.Column(db.String(191), primary_key=True)
    value = db.Column(db.Text, nullable=False)
