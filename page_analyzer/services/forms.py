from bs4 import BeautifulSoup


def has_login_form(soup: BeautifulSoup) -> bool:
    """Return True when a ``<form>`` contains a password ``<input>``.

    Deliberately coarse: no username field or submit button is required.
    """
    for form in soup.find_all("form"):
        for field in form.find_all("input"):
            if str(field.get("type", "")).strip().lower() == "password":
                return True
    return False
