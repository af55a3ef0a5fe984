"""
Application entry point
"""

import os
import uvicorn
from contract_risk.core.config import settings
from contract_risk.main import app

if __name__ == "__main__":
    # Hosting platforms usually pass the port through PORT
    port = int(os.getenv("PORT", settings.PORT))
    uvicorn.run(
        app,
        host=settings.HOST,
        port=port,
        reload=settings.DEBUG
    )
