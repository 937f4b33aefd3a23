from app.db.models.user import User
from app.db.models.galaxy import Galaxy, galaxy_planets, galaxy_images, ORPHANED_GALAXY_NAME
from app.db.models.planet import Planet
from app.db.models.image import Image
from app.db.models.ai_categorization import AICategorization
