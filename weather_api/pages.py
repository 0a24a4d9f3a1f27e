"""
Form page and plain-text result bodies.
"""

from weather_api.normalizer import LocationKey

FORM_PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="utf-8">
    <title>Weather</title>
</head>
<body>
    <h1>Weather lookup</h1>
    <form method="post" action="/">
        <label for="city">City or ZIP code</label>
        <input type="text" id="city" name="city" required>
        <button type="submit">Get weather</button>
    </form>
</body>
</html>
"""


def render_result(location: LocationKey, payload: str) -> str:
    """Plain-text body for a successful form submission."""
    return f"City: {location.html}\nWeather Data: {payload}"
