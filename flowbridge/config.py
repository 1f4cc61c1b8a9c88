from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings, read from FLOWBRIDGE_* environment variables."""

    model_config = SettingsConfigDict(env_prefix="FLOWBRIDGE_", env_file=".env", extra="ignore")

    # API settings
    API_HOST: str = "127.0.0.1"
    API_PORT: int = 8765
    CORS_ORIGINS: list[str] = ["http://localhost:5173", "http://localhost:3000", "http://127.0.0.1:5173"]

    LOG_LEVEL: str = "INFO"

    # Flow diagram sizing
    FLOW_NODE_WIDTH: float = 100
    FLOW_NODE_HEIGHT: float = 60
    FLOW_NODE_GAP: float = 50
    FLOW_RANK_GAP: float = 50

    # Entity diagram sizing
    ENTITY_NODE_WIDTH: float = 256
    ENTITY_HEADER_HEIGHT: float = 45
    ENTITY_ROW_HEIGHT: float = 30
    ENTITY_NODE_GAP: float = 80
    ENTITY_RANK_GAP: float = 100

    ORDERING_PASSES: int = 4

    def flow_layout_options(self) -> dict:
        """Keyword arguments for layout_flow / layout_action."""
        return {
            "node_width": self.FLOW_NODE_WIDTH,
            "node_height": self.FLOW_NODE_HEIGHT,
            "node_gap": self.FLOW_NODE_GAP,
            "rank_gap": self.FLOW_RANK_GAP,
            "passes": self.ORDERING_PASSES,
        }

    def entity_layout_options(self) -> dict:
        """Keyword arguments for layout_entity_graph."""
        return {
            "width": self.ENTITY_NODE_WIDTH,
            "header_height": self.ENTITY_HEADER_HEIGHT,
            "row_height": self.ENTITY_ROW_HEIGHT,
            "node_gap": self.ENTITY_NODE_GAP,
            "rank_gap": self.ENTITY_RANK_GAP,
            "passes": self.ORDERING_PASSES,
        }


settings = Settings()
