import os
import uvicorn
from dotenv import load_dotenv

load_dotenv()
port = int(os.getenv("ENV_PORT", "8000"))

if __name__ == "__main__":
    try:
        print("...Starting chat API...\n")
        uvicorn.run(
            "workspace_chat.main:create_app",
            factory=True,
            host="0.0.0.0",
            port=port,
            reload=os.getenv("ENV", "development") == "development",
            log_level="debug",
        )
    except KeyboardInterrupt:
        print("\nShutting down.")
