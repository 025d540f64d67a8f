from getpass import getpass

from pydantic import ValidationError

from .database import get_store
from .errors import KamposError
from .schemas.auth import ProfessorCreate
from .services.data_manager import DataManager


def main():
    manager = DataManager(get_store())

    print(f"Create a professor account ({manager.store.backend_name} store)")
    name = input("Name: ").strip()
    surname = input("Surname: ").strip()
    email = input("Email: ").strip()
    phone = input("Phone (optional): ").strip() or None
    password = getpass("Password: ")

    try:
        payload = ProfessorCreate(name=name, surname=surname, email=email, phone=phone, password=password)
        professor = manager.register_professor(payload)
    except ValidationError as exc:
        print(f"Invalid data: {exc}")
        return
    except KamposError as exc:
        print(exc.message)
        return
    print(f"Professor {professor.email} created successfully.")


if __name__ == "__main__":
    main()
