import httpx
import pytest

from utils.weather import get_forecast, WeatherServiceError, OPENWEATHERMAP_URL


def payload(main, description="", temp=12.3):
    return {
        "weather": [{"main": main, "description": description}],
        "main": {"temp": temp, "feels_like": temp - 1, "humidity": 80},
        "wind": {"speed": 4.1},
    }


def client_returning(status_code, body=None, seen=None):
    def handler(request):
        if seen is not None:
            seen.append(request)
        if body is None:
            return httpx.Response(status_code, text="not json")
        return httpx.Response(status_code, json=body)

    return httpx.Client(transport=httpx.MockTransport(handler))


@pytest.mark.parametrize("main", ["Rain", "Drizzle", "Thunderstorm"])
def test_wet_conditions_count_as_rain(app, main):
    forecast = get_forecast("Amsterdam", client=client_returning(200, payload(main)))
    assert forecast.is_raining is True
    assert forecast.details["main"] == main


@pytest.mark.parametrize("main", ["Clear", "Clouds", "Snow", "Mist"])
def test_dry_conditions(app, main):
    assert get_forecast("Amsterdam", client=client_returning(200, payload(main))).is_raining is False


def test_request_parameters_and_details(app):
    seen = []
    forecast = get_forecast("Amsterdam", client=client_returning(200, payload("Rain", "light rain"), seen))

    request = seen[0]
    assert str(request.url).startswith(OPENWEATHERMAP_URL)
    assert request.url.params["q"] == "Amsterdam"
    assert request.url.params["appid"] == "test-key"
    assert request.url.params["units"] == "metric"
    assert forecast.details == {
        "main": "Rain",
        "description": "light rain",
        "temperature": 12.3,
        "feels_like": 11.3,
        "humidity": 80,
        "wind_speed": 4.1,
    }


def test_http_error_raises(app):
    with pytest.raises(WeatherServiceError):
        get_forecast("Amsterdam", client=client_returning(500, {"message": "boom"}))


def test_non_json_body_raises(app):
    with pytest.raises(WeatherServiceError):
        get_forecast("Amsterdam", client=client_returning(200, None))


def test_malformed_payload_raises(app):
    with pytest.raises(WeatherServiceError):
        get_forecast("Amsterdam", client=client_returning(200, {"weather": []}))


def test_missing_api_key_raises(app):
    app.config["OPENWEATHERMAP_API_KEY"] = None
    with pytest.raises(WeatherServiceError):
        get_forecast("Amsterdam", client=client_returning(200, payload("Rain")))
