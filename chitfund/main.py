from fastapi import FastAPI

from chitfund.api.arrears import router as arrears_router
from chitfund.api.customers import router as customers_router
from chitfund.api.enrollments import router as enrollments_router
from chitfund.api.invoices import router as invoices_router
from chitfund.api.plans import router as plans_router

app = FastAPI(
    title="Chit Fund Billing API",
    version="0.1.0",
)

@app.get("/health")
def health_check():
    return {"status": "ok"}

app.include_router(customers_router)
app.include_router(plans_router)
app.include_router(enrollments_router)
app.include_router(invoices_router)
app.include_router(arrears_router)
