"""Test data builders for places."""
from app.core.contracts import Place


def make_place(pid, lat=None, lng=None, **extra):
    data = {
        "id": pid,
        "name": extra.pop("name", f"Place {pid}"),
        "location": extra.pop("location", "Somewhere"),
        "latitude": lat,
        "longitude": lng,
    }
    data.update(extra)
    return Place.model_validate(data)


def sample_places():
    """A small set around Goa plus a far-away place and one without coordinates."""
    return [
        make_place(1, 15.5527, 73.7517, name="Baga Beach", location="Goa", district="North Goa", state="Goa",
                   rating_sum=9, rating_count=2),
        make_place(2, 15.4909, 73.8278, name="Panjim Church", location="Panaji", district="North Goa", state="Goa"),
        make_place(3, 15.2993, 74.1240, name="Dudhsagar Falls", location="Sonaulim", state="Goa"),
        make_place(4, 32.2432, 77.1892, name="Manali", location="Manali", state="Himachal Pradesh"),
        make_place(5, None, None, name="Hidden Village", location="Unknown", state="Goa"),
    ]
