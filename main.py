import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from FinDesk.core.config import settings
from FinDesk.services.assistant.assistant_route import router as assistant_router
from FinDesk.services.chat.chat_routes import router as chat_router
from FinDesk.services.deals.deals_route import router as deals_router
from FinDesk.services.documents.documents_route import router as documents_router
from FinDesk.services.lenders.lenders_route import router as lenders_router
from FinDesk.services.metrics.metrics_route import router as metrics_router
from FinDesk.services.vector_store.vector_store_route import router as vector_store_router

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
              title="FinDesk F&I API",
              version="1.0.0"
              )

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(deals_router)
app.include_router(lenders_router)
app.include_router(metrics_router)
app.include_router(assistant_router)
app.include_router(chat_router)
app.include_router(documents_router)
app.include_router(vector_store_router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
