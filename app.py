from flask import Flask, Blueprint, request, session, jsonify, current_app, abort
import os
from datetime import timedelta
from functools import wraps

from models import db, AdminUser, Student, Hall, Exam, Allocation
from seat_layout import AllocationOptions, allocate_seating
from conflict_graph import find_adjacency_conflicts, conflict_stats
from exports import (
    parse_students_csv, student_template_csv, export_csv, export_excel,
    csv_filename, excel_filename,
)

# Configuration
DATA_DIR = os.path.abspath(os.environ.get('SEATING_DATA_DIR', 'data'))
DEFAULT_DATABASE_URL = 'sqlite:///' + os.path.join(DATA_DIR, 'seating.db')
DATABASE_URL = os.environ.get('DATABASE_URL', DEFAULT_DATABASE_URL)

bp = Blueprint('seating', __name__)


def create_app(test_config=None):
    app = Flask(__name__)
    app.secret_key = os.environ.get('SECRET_KEY') or os.urandom(32).hex()

    # Configure secure session settings
    app.config.update(
        SESSION_COOKIE_SECURE=os.environ.get('SESSION_COOKIE_SECURE', '1') == '1',
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SAMESITE='Lax',
        PERMANENT_SESSION_LIFETIME=timedelta(minutes=30),
        SESSION_REFRESH_EACH_REQUEST=True,
        SQLALCHEMY_DATABASE_URI=DATABASE_URL,
        SQLALCHEMY_TRACK_MODIFICATIONS=False,
    )
    if test_config:
        app.config.update(test_config)

    if app.config['SQLALCHEMY_DATABASE_URI'] == DEFAULT_DATABASE_URL:
        os.makedirs(DATA_DIR, exist_ok=True)

    db.init_app(app)
    app.register_blueprint(bp)
    register_error_handlers(app)

    with app.app_context():
        db.create_all()

    return app


def register_error_handlers(app):
    @app.errorhandler(400)
    def bad_request(e):
        return jsonify({'error': getattr(e, 'description', 'Bad request')}), 400

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({'error': 'Not found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return jsonify({'error': 'Method not allowed'}), 405


def require_admin(f):
    @wraps(f)
    def decorated(*args, **kwargs):
        if not session.get('logged_in'):
            return jsonify({'error': 'Login required'}), 401
        return f(*args, **kwargs)
    return decorated


def get_payload():
    data = request.get_json(silent=True)
    if data is None:
        return request.form.to_dict()
    if not isinstance(data, dict):
        abort(400, description="Request body must be a JSON object")
    return data


def invalid(e):
    db.session.rollback()
    return jsonify({'error': str(e)}), 400


def as_bool(value):
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes', 'on')
    return bool(value)


# Routes
@bp.route('/')
def index():
    return jsonify({'message': 'Exam Seating Allocator API is running'})


@bp.route('/register', methods=['POST'])
def register():
    data = get_payload()
    try:
        user = AdminUser.register(
            data.get('username'), data.get('password'),
            full_name=data.get('full_name'), email=data.get('email'),
        )
        db.session.commit()
    except ValueError as e:
        return invalid(e)

    current_app.logger.info("Registered admin %s", user.username)
    return jsonify(user.to_dict()), 201


@bp.route('/login', methods=['POST'])
def login():
    data = get_payload()
    user = AdminUser.query.filter_by(username=str(data.get('username') or '').strip()).first()

    if user is None or not user.check_password(data.get('password')):
        return jsonify({'error': 'Invalid username or password'}), 401

    user.record_successful_login()
    db.session.commit()

    session.clear()
    session.permanent = True
    session['logged_in'] = True
    session['user_id'] = user.id
    session['username'] = user.username
    return jsonify(user.to_dict())


@bp.route('/logout', methods=['POST'])
def logout():
    session.clear()
    return jsonify({'message': 'Logged out'})


@bp.route('/api/me')
@require_admin
def me():
    user = db.get_or_404(AdminUser, session['user_id'])
    return jsonify(user.to_dict())


@bp.route('/api/dashboard')
@require_admin
def dashboard():
    halls = Hall.query.all()
    recent_exams = Exam.query.order_by(Exam.id.desc()).limit(3).all()
    return jsonify({
        'registered_students': Student.query.count(),
        'available_halls': len(halls),
        'total_capacity': sum(h.capacity for h in halls),
        'scheduled_exams': Exam.query.count(),
        'allocations': Allocation.query.count(),
        'recent_exams': [e.to_dict() for e in recent_exams],
    })


# Students
@bp.route('/api/students')
@require_admin
def list_students():
    return jsonify([s.to_dict() for s in Student.search(request.args.get('q'))])


@bp.route('/api/subjects')
@require_admin
def list_subjects():
    return jsonify(Student.distinct_subjects())


@bp.route('/api/students/import', methods=['POST'])
@require_admin
def import_students():
    uploaded_file = request.files.get('file')
    if uploaded_file and uploaded_file.filename != '':
        source = uploaded_file.stream
    elif request.data:
        source = request.data
    else:
        return jsonify({'error': 'No CSV file provided'}), 400

    try:
        rows = parse_students_csv(source)
        inserted, skipped = Student.bulk_import(rows)
        db.session.commit()
    except ValueError as e:
        return invalid(e)

    current_app.logger.info("Imported %d students (%d duplicates skipped)", inserted, skipped)
    return jsonify({
        'message': 'Student import completed',
        'inserted': inserted,
        'skipped_duplicates': skipped,
    })


@bp.route('/api/students/template')
@require_admin
def student_template():
    return (
        student_template_csv(),
        200,
        {
            'Content-Type': 'text/csv',
            'Content-Disposition': 'attachment; filename=student_template.csv'
        }
    )


@bp.route('/api/students', methods=['DELETE'])
@require_admin
def clear_students():
    deleted = Student.query.delete()
    db.session.commit()
    return jsonify({'deleted': deleted})


# Halls
@bp.route('/api/halls')
@require_admin
def list_halls():
    return jsonify([h.to_dict() for h in Hall.query.order_by(Hall.id).all()])


@bp.route('/api/halls', methods=['POST'])
@require_admin
def add_hall():
    data = get_payload()
    try:
        hall = Hall.create(data.get('name'), data.get('rows'), data.get('columns'))
        db.session.commit()
    except ValueError as e:
        return invalid(e)
    return jsonify(hall.to_dict()), 201


@bp.route('/api/halls/<int:hall_id>', methods=['DELETE'])
@require_admin
def delete_hall(hall_id):
    hall = db.get_or_404(Hall, hall_id)
    db.session.delete(hall)
    db.session.commit()
    return jsonify({'deleted': hall_id})


# Exams
@bp.route('/api/exams')
@require_admin
def list_exams():
    return jsonify([e.to_dict() for e in Exam.query.order_by(Exam.id).all()])


@bp.route('/api/exams', methods=['POST'])
@require_admin
def add_exam():
    data = get_payload()
    try:
        exam = Exam.create(data.get('name'), data.get('date'), data.get('subjects'))
        db.session.commit()
    except ValueError as e:
        return invalid(e)
    return jsonify(exam.to_dict()), 201


@bp.route('/api/exams/<int:exam_id>', methods=['DELETE'])
@require_admin
def delete_exam(exam_id):
    exam = db.get_or_404(Exam, exam_id)
    db.session.delete(exam)
    db.session.commit()
    return jsonify({'deleted': exam_id})


@bp.route('/api/exams/<int:exam_id>/allocate', methods=['POST'])
@require_admin
def run_allocation(exam_id):
    exam = db.get_or_404(Exam, exam_id)
    data = get_payload()

    halls = Hall.query.order_by(Hall.id).all()
    if not halls:
        return jsonify({'error': 'Add at least one hall before allocating'}), 400

    seed = data.get('seed')
    if seed not in (None, ''):
        try:
            seed = int(seed)
        except (TypeError, ValueError):
            return jsonify({'error': 'seed must be an integer'}), 400
    else:
        seed = None

    options = AllocationOptions(
        empty_seat_spacing=as_bool(data.get('spacing', False)),
        strict_adjacency=as_bool(data.get('strict', False)),
    )
    result = allocate_seating(
        exam.to_session(),
        [h.to_room() for h in halls],
        [s.to_examinee() for s in Student.query.order_by(Student.id).all()],
        options=options,
        rng=seed,
    )

    allocation = Allocation.from_result(exam, result, empty_seat_spacing=options.empty_seat_spacing)
    db.session.commit()

    current_app.logger.info(
        "Exam %s allocated as %s: %d seated, %d unallocated",
        exam.name, result.id, result.seated_count, len(result.unallocated),
    )
    summary = allocation.to_summary()
    summary['conflicts'] = conflict_stats(result)['total_conflicts']
    return jsonify(summary), 201


# Allocations
@bp.route('/api/allocations')
@require_admin
def list_allocations():
    return jsonify([a.to_summary() for a in Allocation.newest_first()])


@bp.route('/api/allocations/<allocation_id>')
@require_admin
def get_allocation(allocation_id):
    allocation = db.get_or_404(Allocation, allocation_id)
    payload = allocation.to_summary()
    payload['result'] = allocation.snapshot
    return jsonify(payload)


@bp.route('/api/allocations/<allocation_id>/conflicts')
@require_admin
def get_allocation_conflicts(allocation_id):
    result = db.get_or_404(Allocation, allocation_id).to_result()
    return jsonify({
        'stats': conflict_stats(result),
        'conflicts': find_adjacency_conflicts(result),
    })


@bp.route('/api/allocations/<allocation_id>/export/csv')
@require_admin
def export_allocation_csv(allocation_id):
    result = db.get_or_404(Allocation, allocation_id).to_result()
    return (
        export_csv(result),
        200,
        {
            'Content-Type': 'text/csv',
            'Content-Disposition': f'attachment; filename="{csv_filename(result)}"'
        }
    )


@bp.route('/api/allocations/<allocation_id>/export/xlsx')
@require_admin
def export_allocation_excel(allocation_id):
    allocation = db.get_or_404(Allocation, allocation_id)
    exam = allocation.exam
    exam_name = exam.name if exam else None
    content = export_excel(allocation.to_result(), exam_name=exam_name,
                           exam_date=exam.exam_date if exam else None)
    return (
        content,
        200,
        {
            'Content-Type': 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
            'Content-Disposition': f'attachment; filename="{excel_filename(exam_name)}"'
        }
    )


@bp.route('/api/data', methods=['DELETE'])
@require_admin
def clear_all_data():
    """Wipe students, halls, exams and allocations. Admin accounts are kept."""
    counts = {
        'allocations': Allocation.query.delete(),
        'exams': Exam.query.delete(),
        'halls': Hall.query.delete(),
        'students': Student.query.delete(),
    }
    db.session.commit()
    return jsonify({'deleted': counts})


if __name__ == '__main__':
    create_app().run(debug=os.environ.get('FLASK_DEBUG') == '1')
