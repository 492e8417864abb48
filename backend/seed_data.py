"""Seed database with demo data."""
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from app.database import SessionLocal
from app.models import Incident, SystemParameter, User
from app.services.incident_permissions import UserRole
from app.services.incident_status import DEFAULT_DEADLINE_DAYS, calculate_incident_status
from app.services.system_parameters import SECOND_INFO_DEADLINE_DAYS, THIRD_INFO_DEADLINE_DAYS


def seed():
    """Seed database with demo data."""
    db = SessionLocal()

    try:
        # Deadline parameters
        parameters_data = [
            {
                'name': '2次情報期限日数',
                'parameter_key': SECOND_INFO_DEADLINE_DAYS,
                'parameter_value': str(DEFAULT_DEADLINE_DAYS),
                'description': '1次情報の作成日から2次情報入力までの期限日数',
                'data_type': 'int',
            },
            {
                'name': '3次情報期限日数',
                'parameter_key': THIRD_INFO_DEADLINE_DAYS,
                'parameter_value': str(DEFAULT_DEADLINE_DAYS),
                'description': '2次情報の入力日から3次情報入力までの期限日数',
                'data_type': 'int',
            },
        ]
        for parameter_data in parameters_data:
            exists = db.query(SystemParameter).filter(
                SystemParameter.parameter_key == parameter_data['parameter_key']
            ).first()
            if not exists:
                db.add(SystemParameter(**parameter_data))

        # One user per role
        users_data = [
            {'username': 'sysadmin', 'name': 'システム管理者', 'role_id': UserRole.SYSTEM_ADMIN},
            {'username': 'officeadmin', 'name': '事務管理者', 'role_id': UserRole.OFFICE_ADMIN},
            {'username': 'office', 'name': '一般事務', 'role_id': UserRole.GENERAL_OFFICE},
            {'username': 'threepl', 'name': '3PL担当', 'role_id': UserRole.THREE_PL},
        ]

        users = []
        for user_data in users_data:
            user = User(organization_id=1, **user_data)
            db.add(user)
            users.append(user)

        db.flush()

        # Incidents covering every status
        now = datetime.now(timezone.utc)
        base = {
            'organization': 1,
            'creator': users[2].id,
            'occurrence_location': 1,
            'shipping_warehouse': 1,
            'shipping_company': 1,
            'trouble_category': 1,
            'trouble_detail_category': 1,
            'quantity': Decimal('1'),
            'unit': 1,
            'created_by': users[2].id,
            'updated_by': users[2].id,
        }
        incidents_data = [
            {
                'creation_date': now - timedelta(days=2),
                'occurrence_datetime': now - timedelta(days=2),
                'details': '誤出荷（品番違い）',
                'voucher_number': 'V-0001',
            },
            {
                'creation_date': now - timedelta(days=10),
                'occurrence_datetime': now - timedelta(days=10),
                'details': '破損（外装へこみ）',
                'shipping_warehouse': 2,
            },
            {
                'creation_date': now - timedelta(days=5),
                'occurrence_datetime': now - timedelta(days=5),
                'details': '数量不足',
                'input_date': now - timedelta(days=3),
                'process_description': 'ピッキング時の確認漏れ',
                'cause': 'ダブルチェック未実施',
            },
            {
                'creation_date': now - timedelta(days=20),
                'occurrence_datetime': now - timedelta(days=20),
                'details': '遅配',
                'shipping_company': 2,
                'input_date': now - timedelta(days=15),
                'process_description': '配車手配の遅れ',
                'cause': '繁忙期の車両不足',
            },
            {
                'creation_date': now - timedelta(days=25),
                'occurrence_datetime': now - timedelta(days=25),
                'details': '汚損',
                'trouble_category': 2,
                'input_date': now - timedelta(days=22),
                'process_description': '雨天時の積込',
                'cause': '養生不足',
                'input_date3': now - timedelta(days=18),
                'recurrence_prevention_measures': '雨天時の養生手順を追加',
            },
        ]

        for incident_data in incidents_data:
            incident = Incident(**{**base, **incident_data})
            incident.status = calculate_incident_status(incident, now=now).value
            db.add(incident)

        db.commit()
        print("✅ Database seeded successfully!")
        print("\nDemo users (role_id):")
        for user in users:
            print(f"  {user.username} ({int(user.role_id)})")

    except Exception as e:
        db.rollback()
        print(f"❌ Error seeding database: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed()
