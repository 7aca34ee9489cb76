from fastapi import FastAPI
from marketplace.api import (
    rider,
    order,
    assigned_order,
    notification,
    review,
)
from marketplace.src import exceptions
from marketplace.src.enums import AppID


# ------------------------------------------------------
# Create separate FastAPI apps for each user domain
# ------------------------------------------------------
app_admin = FastAPI(title="Admin APP")
app_rider = FastAPI(title="Rider APP")

# Tag each app with its AppID
app_admin.state.id = AppID.ADMIN
app_rider.state.id = AppID.RIDER

# Render every error in the response envelope
exceptions.registerHandlers(app_admin)
exceptions.registerHandlers(app_rider)


# ------------------------------------------------------
# Admin routers
# ------------------------------------------------------
app_admin.include_router(rider.route_admin)
app_admin.include_router(order.route_admin)
app_admin.include_router(assigned_order.route_admin)
app_admin.include_router(notification.route_admin)
app_admin.include_router(review.route_admin)


# ------------------------------------------------------
# Rider routers
# ------------------------------------------------------
app_rider.include_router(rider.route_rider)
app_rider.include_router(assigned_order.route_rider)
app_rider.include_router(review.route_rider)
