import asyncio
import logging
import secrets

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query
from fastapi.responses import JSONResponse

from .auth import Authenticator
from .authorizer import ChargeAuthorizer, ChargeResult
from .config import *
from .errors import ConfigurationError, CredentialError, GigachargerError, RemoteCommandError
from .orchestrator import SessionOrchestrator
from .scheduler import ChargingJob, build_scheduler
from .vehicle import VehicleClient, haversine_m

logger = logging.getLogger(__name__)

app = FastAPI(title="Gigacharger Bridge")


def _home_location():
    if VEHICLE_HOME_LATITUDE and VEHICLE_HOME_LONGITUDE:
        return float(VEHICLE_HOME_LATITUDE), float(VEHICLE_HOME_LONGITUDE)
    return None


api_password = API_PASSWORD
orchestrator = SessionOrchestrator(
    Authenticator(),
    ChargeAuthorizer(),
    email=GIGACHARGER_EMAIL,
    password=GIGACHARGER_PASSWORD,
    default_charger_id=MY_CHARGER_ID,
    reauth_on=GIGACHARGER_REAUTH_ON,
)
vehicle = VehicleClient(TESSIE_TOKEN, TESSIE_VIN) if TESSIE_TOKEN and TESSIE_VIN else None
home = _home_location()
home_radius_m = VEHICLE_HOME_RADIUS_M


def require_password(password: str | None = Query(default=None)):
    if not api_password:
        return
    if password is None or not secrets.compare_digest(password, api_password):
        raise HTTPException(status_code=401, detail="Invalid password")


def _charging_job() -> ChargingJob:
    return ChargingJob(orchestrator, vehicle, home, home_radius_m)


def _require_vehicle() -> VehicleClient:
    if vehicle is None:
        raise HTTPException(status_code=400, detail="No vehicle configured - set TESSIE_TOKEN and TESSIE_VIN")
    return vehicle


def _charge_ok(result: ChargeResult) -> dict:
    return {"ok": True, "charger_id": result.charger_id, "energy_kwh": result.energy_kwh}


def _charge_failed(e: GigachargerError) -> JSONResponse:
    status = 400 if isinstance(e, (ConfigurationError, CredentialError)) else 500
    logger.error(f"Could not authorize charging: {e}")
    return JSONResponse(status_code=status, content={"ok": False, "error": e.kind, "detail": str(e)})


@app.get("/health")
async def health():
    return {"ok": True}


gated = APIRouter(dependencies=[Depends(require_password)])


# -------- charging --------
@gated.get("/gigacharger/start")
async def start_charging(charger: str | None = None):
    try:
        result = await orchestrator.authorize_charging(charger)
    except GigachargerError as e:
        return _charge_failed(e)
    return _charge_ok(result)


@gated.get("/gigacharger/start_if_home")
async def start_charging_if_home(charger: str | None = None):
    try:
        result = await _charging_job().start_if_home(charger)
    except GigachargerError as e:
        return _charge_failed(e)
    if result is None:
        return {"ok": True, "skipped": True, "reason": "vehicle not at home"}
    return _charge_ok(result)


@gated.post("/gigacharger/logout")
async def logout():
    orchestrator.invalidate()
    return {"ok": True}


# -------- vehicle --------
async def _vehicle_command(name: str, command):
    try:
        await command()
    except RemoteCommandError as e:
        logger.error(f"Vehicle command {name} failed: {e}")
        raise HTTPException(status_code=500, detail=str(e))
    return {"ok": True, "command": name}


@gated.get("/vehicle/location")
async def vehicle_location():
    v = _require_vehicle()
    try:
        loc = await v.get_location()
    except RemoteCommandError as e:
        raise HTTPException(status_code=500, detail=str(e))
    body = {"latitude": loc.latitude, "longitude": loc.longitude, "at_home": None}
    if home is not None:
        body["at_home"] = haversine_m(home[0], home[1], loc.latitude, loc.longitude) <= home_radius_m
    return body


@gated.get("/vehicle/unlock")
async def vehicle_unlock():
    return await _vehicle_command("unlock", _require_vehicle().unlock)


@gated.get("/vehicle/lock")
async def vehicle_lock():
    return await _vehicle_command("lock", _require_vehicle().lock)


@gated.get("/vehicle/frunk")
async def vehicle_frunk():
    return await _vehicle_command("frunk", _require_vehicle().open_frunk)


@gated.get("/vehicle/climate")
async def vehicle_climate():
    return await _vehicle_command("climate", _require_vehicle().start_climate)


@gated.get("/vehicle/find")
async def vehicle_find(flashes: int = 1, horn: bool = False):
    v = _require_vehicle()
    try:
        await v.find_vehicle(flashes, horn)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RemoteCommandError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return {"ok": True, "command": "find", "flashes": flashes, "horn": horn}


app.include_router(gated)


async def main():
    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s | %(levelname)s | %(message)s")
    scheduler = build_scheduler(_charging_job(), CHARGING_CRON)
    if scheduler is not None:
        scheduler.start()
    server = uvicorn.Server(uvicorn.Config(app, host=HTTP_HOST, port=HTTP_PORT, loop="asyncio", log_level="info"))
    try:
        await server.serve()
    finally:
        if scheduler is not None:
            scheduler.shutdown(wait=False)
        if vehicle is not None:
            await vehicle.aclose()


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
