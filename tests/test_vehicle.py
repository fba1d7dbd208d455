import httpx
import pytest

from gigabridge.errors import RemoteCommandError
from gigabridge.vehicle import VehicleClient, haversine_m

HOME = (60.1699, 24.9384)


class FakeTessie:
    def __init__(self, location=HOME, results=None, status=200):
        self.location = location
        self.results = results or {}
        self.status = status
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.status != 200:
            return httpx.Response(self.status, json={"error": "boom"})
        path = request.url.path.split("/", 2)[2]
        if path == "location":
            lat, lon = self.location
            return httpx.Response(200, json={"latitude": lat, "longitude": lon, "address": "Home"})
        return httpx.Response(200, json={"result": self.results.get(path, True)})

    def paths(self):
        return [r.url.path for r in self.requests]


def make_client(fake: FakeTessie) -> VehicleClient:
    return VehicleClient("secret-token", "VIN123", api_url="https://api.example.com", transport=httpx.MockTransport(fake))


def test_haversine_one_degree_latitude():
    assert haversine_m(0, 0, 1, 0) == pytest.approx(111195, rel=1e-3)
    assert haversine_m(*HOME, *HOME) == 0


@pytest.mark.asyncio
async def test_get_location_sends_bearer_token():
    fake = FakeTessie()
    loc = await make_client(fake).get_location()

    assert (loc.latitude, loc.longitude) == HOME
    (request,) = fake.requests
    assert request.url.path == "/VIN123/location"
    assert request.headers["authorization"] == "Bearer secret-token"


@pytest.mark.asyncio
async def test_is_in_target_location():
    near = FakeTessie(location=(HOME[0] + 0.0005, HOME[1]))  # ~55 m north
    far = FakeTessie(location=(HOME[0] + 0.01, HOME[1]))

    assert await make_client(near).is_in_target_location(*HOME)
    assert not await make_client(far).is_in_target_location(*HOME)
    assert await make_client(far).is_in_target_location(*HOME, radius=5000)


@pytest.mark.asyncio
async def test_fire_and_forget_commands():
    fake = FakeTessie()
    client = make_client(fake)

    await client.unlock()
    await client.lock()
    await client.open_frunk()
    await client.start_climate()

    assert fake.paths() == [
        "/VIN123/command/unlock",
        "/VIN123/command/lock",
        "/VIN123/command/activate_front_trunk",
        "/VIN123/command/start_climate",
    ]
    assert all(r.method == "POST" for r in fake.requests)
    assert fake.requests[0].url.params["wait_for_completion"] == "false"


@pytest.mark.asyncio
async def test_find_vehicle_wakes_honks_then_flashes():
    fake = FakeTessie()

    await make_client(fake).find_vehicle(2, use_horn=True)

    assert fake.paths() == [
        "/VIN123/wake",
        "/VIN123/command/honk",
        "/VIN123/command/flash",
        "/VIN123/command/flash",
    ]


@pytest.mark.asyncio
@pytest.mark.parametrize("flashes", [-1, 6])
async def test_find_vehicle_rejects_flash_count(flashes):
    fake = FakeTessie()

    with pytest.raises(ValueError):
        await make_client(fake).find_vehicle(flashes)

    assert fake.requests == []


@pytest.mark.asyncio
async def test_false_result_is_remote_command_error():
    fake = FakeTessie(results={"wake": False})

    with pytest.raises(RemoteCommandError):
        await make_client(fake).find_vehicle(1)

    assert fake.paths() == ["/VIN123/wake"]


@pytest.mark.asyncio
async def test_http_error_is_remote_command_error():
    with pytest.raises(RemoteCommandError):
        await make_client(FakeTessie(status=502)).unlock()
