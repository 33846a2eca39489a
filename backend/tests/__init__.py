# Force SQLModel table registration at test discovery time
# This ensures all models are registered before any test database creation
from draw_engine.models.group import GroupMatch, TournamentGroup  # noqa: F401
from draw_engine.models.registration import Registration  # noqa: F401
from draw_engine.models.tournament import Tournament  # noqa: F401
