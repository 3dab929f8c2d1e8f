# pharmacy_purchasing/main.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pharmacy_purchasing.db import init_db
from pharmacy_purchasing.routers import (
    backup, calculator, clients, invoices, reports, settings, suppliers,
)

app = FastAPI(title="Pharmacy Purchasing Assistant")

# local single-user tool: wide-open CORS for the browser front-end
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def on_startup():
    init_db()


# Routers
app.include_router(settings.router,   prefix="/settings",   tags=["Settings"])
app.include_router(suppliers.router,  prefix="/suppliers",  tags=["Suppliers"])
app.include_router(clients.router,    prefix="/clients",    tags=["Clients"])
app.include_router(calculator.router, prefix="/calculator", tags=["Calculator"])
app.include_router(invoices.router,   prefix="/invoices",   tags=["Invoices"])
app.include_router(reports.router,    prefix="/reports",    tags=["Reports"])
app.include_router(backup.router,     prefix="/backup",     tags=["Backup"])


@app.get("/")
def home():
    return {"message": "Welcome to the Pharmacy Purchasing Assistant"}
