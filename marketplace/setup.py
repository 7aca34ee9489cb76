import argparse
from decimal import Decimal
from http import HTTPStatus
from requests import post

from marketplace.src import argon2
from marketplace.src.enums import RiderStatus, StoreType, VehicleType
from marketplace.src.minio import createBucket, deleteBucket
from marketplace.src.constants import DELIVERY_PROOFS
from marketplace.src.urls import URL_ASSIGN, URL_ASSIGN_BULK
from marketplace.src.db import (
    Order,
    Rider,
    sessionMaker,
    engine,
    ORMbase,
)


# ----------------------------------- Project Setup -------------------------------------------#
def removeTables():
    session = sessionMaker()
    ORMbase.metadata.drop_all(engine)
    session.commit()
    print("* All tables deleted")
    deleteBucket(DELIVERY_PROOFS)
    print("* All buckets deleted")
    session.close()


def createTables():
    session = sessionMaker()
    ORMbase.metadata.create_all(engine)
    session.commit()
    print("* All tables created")
    createBucket(DELIVERY_PROOFS)
    print("* All buckets created")
    session.close()


def initDB():
    session = sessionMaker()
    password = argon2.makePassword("password")
    riders = [
        Rider(
            name="Arun Kumar",
            phone="+919496801157",
            email="arun@marketplace.com",
            password=password,
            vehicle_type=VehicleType.BIKE,
            vehicle_number="KL01AB1234",
            license_number="KL0120110012345",
            status=RiderStatus.AVAILABLE,
            latitude=8.761725,
            longitude=76.688997,
            address="Edava, Thiruvananthapuram",
        ),
        Rider(
            name="Meera Nair",
            phone="+919496801158",
            email="meera@marketplace.com",
            password=password,
            vehicle_type=VehicleType.SCOOTER,
            vehicle_number="KL22C4321",
            license_number="KL2220150054321",
            status=RiderStatus.AVAILABLE,
            latitude=8.524139,
            longitude=76.936638,
            address="Pattom, Thiruvananthapuram",
        ),
    ]
    session.add_all(riders)
    print("* Created riders")

    deliveryAddress = {
        "street": "Temple road",
        "city": "Varkala",
        "state": "Kerala",
        "zip_code": "695141",
        "country": "India",
        "contact_phone": "+919496801159",
    }
    orders = []
    for storeType, storeName, price in [
        (StoreType.RESTAURANT, "Cliff cafe", Decimal("240.00")),
        (StoreType.MEDICAL, "City pharmacy", Decimal("118.50")),
        (StoreType.GROCERY, "Fresh mart", Decimal("560.00")),
    ]:
        orders.append(
            Order(
                user_id=1,
                store_type=storeType,
                store_id=storeType.value,
                store_name=storeName,
                items=[
                    {
                        "item_id": 1,
                        "item_type": storeType.name.lower(),
                        "name": f"{storeName} item",
                        "price": float(price),
                        "quantity": 1,
                    }
                ],
                delivery_address=deliveryAddress,
                sub_total=price,
                delivery_charge=Decimal("30.00"),
                total_amount=price + Decimal("30.00"),
            )
        )
    session.add_all(orders)
    session.commit()
    print("* Created orders")
    session.close()


# ----------------------------------- Test Data -------------------------------------------#
def POST(URL: str, status_code: int = HTTPStatus.CREATED, **kwargs):
    response = post(URL, **kwargs)
    assert response.status_code == status_code, response.text
    return response


def testDB():
    # Base URL
    BASE_URL = "http://127.0.0.1:8080/admin"

    # Single assignment
    POST(
        (BASE_URL + URL_ASSIGN),
        json={"rider_id": 1, "order_id": 1, "user_id": 1, "notes": "Handle with care"},
    )
    print("* Assigned order 1 to rider 1")

    # Bulk assignment
    POST(
        (BASE_URL + URL_ASSIGN_BULK),
        json={
            "rider_id": 2,
            "orders": [
                {"order_id": 2, "user_id": 1},
                {"order_id": 3, "user_id": 1},
            ],
        },
    )
    print("* Assigned orders 2 and 3 to rider 2")


# Setup database
if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    # remove tables
    parser.add_argument("-rm", action="store_true", help="remove tables")
    parser.add_argument("-cr", action="store_true", help="create tables")
    parser.add_argument("-init", action="store_true", help="initialize DB")
    parser.add_argument("-test", action="store_true", help="add test data")
    args = parser.parse_args()

    if args.cr:
        createTables()
    if args.init:
        initDB()
    if args.test:
        testDB()
    if args.rm:
        removeTables()
