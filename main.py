import uvicorn
from dotenv import load_dotenv

load_dotenv()

from bloggy.config import get_settings  # noqa: E402
from bloggy.main import create_app  # noqa: E402

settings = get_settings()
app = create_app(settings)

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
