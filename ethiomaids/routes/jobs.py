from flask import Blueprint, request, jsonify, current_app
from sqlalchemy.exc import IntegrityError
from ethiomaids import db
from ethiomaids.models.job import (
    Job, JobApplication, JOB_STATUSES, APPLICATION_STATUSES, FINAL_APPLICATION_STATUSES
)
from ethiomaids.models.columns import utcnow
from ethiomaids.utils.auth import require_auth, require_role, get_current_user, is_admin
from ethiomaids.utils.helpers import (
    normalize_keys, parse_date, parse_decimal, get_pagination_args, paginated_response,
    ilike_pattern, create_notification
)
from ethiomaids.utils.rbac import check_usage_quota
from ethiomaids.utils.subscriptions import get_quota_plan_type
from ethiomaids.utils.validators import validate_job
from datetime import timedelta

bp = Blueprint('jobs', __name__)

JOB_FIELDS = (
    'title', 'description', 'country', 'city', 'job_type', 'salary_min', 'salary_max',
    'currency', 'required_skills', 'required_languages', 'start_date'
)

JOB_SORTS = {
    'newest': (Job.created_at.desc(),),
    'oldest': (Job.created_at.asc(),),
    'salary_high': (Job.salary_min.desc(),),
    'salary_low': (Job.salary_min.asc(),),
    'featured': (Job.is_featured.desc(), Job.created_at.desc()),
}

DEFAULT_FEATURE_DAYS = 7


def apply_job_fields(job, data):
    for field in JOB_FIELDS:
        if field not in data:
            continue
        value = data[field]
        if field in ('salary_min', 'salary_max'):
            value = parse_decimal(value)
        elif field == 'start_date':
            value = parse_date(value)
        elif field in ('title', 'description') and value:
            value = value.strip()
        setattr(job, field, value)


def can_manage_job(job):
    return is_admin() or job.sponsor_id == request.current_user['uid']


@bp.route('/', methods=['GET'])
def get_jobs():
    """
    List job postings
    ---
    tags:
      - Jobs
    parameters:
      - name: country
        in: query
        schema:
          type: string
      - name: city
        in: query
        schema:
          type: string
      - name: job_type
        in: query
        schema:
          type: string
      - name: salary_min
        in: query
        schema:
          type: number
      - name: salary_max
        in: query
        schema:
          type: number
      - name: skill
        in: query
        schema:
          type: string
      - name: search
        in: query
        schema:
          type: string
      - name: sort
        in: query
        schema:
          type: string
          enum: [newest, oldest, salary_high, salary_low, featured]
    responses:
      200:
        description: Paginated active jobs
    """
    page, per_page = get_pagination_args()
    query = Job.query

    # Only admins may look past active postings here; sponsors use /mine
    status = request.args.get('status')
    user = get_current_user() if request.headers.get('Authorization') else None
    if status and user and user.get('role') == 'admin':
        query = query.filter(Job.status == status)
    else:
        query = query.filter(Job.status == 'active')

    country = request.args.get('country')
    if country:
        query = query.filter(Job.country == country)
    city = request.args.get('city')
    if city:
        query = query.filter(Job.city == city)
    job_type = request.args.get('job_type')
    if job_type and job_type != 'all':
        query = query.filter(Job.job_type == job_type)
    salary_min = parse_decimal(request.args.get('salary_min'))
    if salary_min is not None:
        query = query.filter(Job.salary_min >= salary_min)
    salary_max = parse_decimal(request.args.get('salary_max'))
    if salary_max is not None:
        query = query.filter(Job.salary_min <= salary_max)
    skill = request.args.get('skill')
    if skill:
        query = query.filter(db.cast(Job.required_skills, db.String).ilike(ilike_pattern(f'"{skill}"'), escape='\\'))
    search = request.args.get('search', '').strip()
    if search:
        pattern = ilike_pattern(search)
        query = query.filter(db.or_(
            Job.title.ilike(pattern, escape='\\'),
            Job.description.ilike(pattern, escape='\\'),
            Job.city.ilike(pattern, escape='\\')
        ))

    order = JOB_SORTS.get(request.args.get('sort', 'newest'), JOB_SORTS['newest'])
    pagination = query.order_by(*order, Job.id).paginate(page=page, per_page=per_page, error_out=False)
    return jsonify(paginated_response('jobs', pagination, Job.to_dict, page, per_page)), 200


@bp.route('/mine', methods=['GET'])
@require_role('sponsor')
def get_my_jobs():
    """Get the sponsor's own jobs (any status)"""
    page, per_page = get_pagination_args()
    query = Job.query.filter_by(sponsor_id=request.current_user['uid'])
    status = request.args.get('status')
    if status:
        query = query.filter_by(status=status)
    pagination = query.order_by(Job.created_at.desc(), Job.id).paginate(page=page, per_page=per_page, error_out=False)
    return jsonify(paginated_response('jobs', pagination, Job.to_dict, page, per_page)), 200


@bp.route('/stats', methods=['GET'])
@require_role('sponsor')
def get_my_job_stats():
    """Posting statistics for the sponsor's dashboard"""
    sponsor_id = request.current_user['uid']
    base = Job.query.filter_by(sponsor_id=sponsor_id)
    totals = db.session.query(
        db.func.coalesce(db.func.sum(Job.applications_count), 0),
        db.func.coalesce(db.func.sum(Job.views_count), 0)
    ).filter(Job.sponsor_id == sponsor_id).one()

    return jsonify({
        'total_jobs': base.count(),
        'active_jobs': base.filter(Job.status == 'active').count(),
        'draft_jobs': base.filter(Job.status == 'draft').count(),
        'filled_jobs': base.filter(Job.status == 'filled').count(),
        'total_applications': int(totals[0]),
        'total_views': int(totals[1])
    }), 200


@bp.route('/<job_id>', methods=['GET'])
def get_job(job_id):
    """Get job by ID"""
    job = db.get_or_404(Job, job_id)
    user = get_current_user() if request.headers.get('Authorization') else None
    uid = user['uid'] if user else None
    is_owner = uid is not None and uid == job.sponsor_id

    if job.status != 'active' and not is_owner and not (user and user.get('role') == 'admin'):
        return jsonify({'error': 'Job not found'}), 404

    if not is_owner:
        job.views_count = (job.views_count or 0) + 1
        db.session.commit()

    return jsonify(job.to_dict()), 200


@bp.route('/', methods=['POST'])
@require_role('sponsor')
def create_job():
    """
    Create a new job posting
    ---
    tags:
      - Jobs
    security:
      - Bearer: []
    requestBody:
      required: true
      content:
        application/json:
          schema:
            type: object
            required:
              - title
              - description
            properties:
              title:
                type: string
              description:
                type: string
              job_type:
                type: string
              salary_min:
                type: number
              salary_max:
                type: number
              status:
                type: string
                enum: [draft, active]
    responses:
      201:
        description: Job created
      400:
        description: Validation failed
      403:
        description: Job posting quota reached for the current plan
    """
    data = normalize_keys(request.get_json(silent=True))
    sponsor_id = request.current_user['uid']

    errors = validate_job(data)
    status = data.get('status', 'active')
    if status not in ('draft', 'active'):
        errors['status'] = 'New jobs must be draft or active'
    if errors:
        return jsonify({'error': 'Validation failed', 'errors': errors}), 400

    open_jobs = Job.query.filter(Job.sponsor_id == sponsor_id, Job.status.in_(('active', 'draft'))).count()
    quota = check_usage_quota('sponsor', get_quota_plan_type(sponsor_id), 'job_postings', open_jobs)
    if not quota['allowed']:
        return jsonify({
            'error': 'Job posting limit reached for your plan',
            'upgrade_required': True,
            'quota': quota
        }), 403

    job = Job(sponsor_id=sponsor_id, status=status)
    apply_job_fields(job, data)
    db.session.add(job)
    db.session.commit()

    current_app.logger.info(f"Job {job.id} created by sponsor {sponsor_id}")
    return jsonify(job.to_dict()), 201


@bp.route('/<job_id>', methods=['PUT'])
@require_auth
def update_job(job_id):
    """Update job"""
    job = db.get_or_404(Job, job_id)
    if not can_manage_job(job):
        return jsonify({'error': 'Forbidden - Not the job owner'}), 403

    data = normalize_keys(request.get_json(silent=True))
    merged = {
        'salary_min': job.salary_min,
        'salary_max': job.salary_max,
    }
    merged.update(data)
    errors = validate_job(merged, partial=True)
    if errors:
        return jsonify({'error': 'Validation failed', 'errors': errors}), 400

    apply_job_fields(job, data)
    db.session.commit()
    return jsonify(job.to_dict()), 200


@bp.route('/<job_id>', methods=['DELETE'])
@require_auth
def delete_job(job_id):
    """Delete job"""
    job = db.get_or_404(Job, job_id)
    if not can_manage_job(job):
        return jsonify({'error': 'Forbidden - Not the job owner'}), 403

    db.session.delete(job)
    db.session.commit()
    return jsonify({'message': 'Job deleted successfully'}), 200


@bp.route('/<job_id>/status', methods=['PATCH'])
@require_auth
def change_job_status(job_id):
    """Change job status"""
    job = db.get_or_404(Job, job_id)
    if not can_manage_job(job):
        return jsonify({'error': 'Forbidden - Not the job owner'}), 403

    data = request.get_json(silent=True) or {}
    status = data.get('status')
    if status not in JOB_STATUSES:
        return jsonify({'error': f'Status must be one of: {", ".join(JOB_STATUSES)}'}), 400

    job.status = status
    db.session.commit()
    return jsonify(job.to_dict()), 200


@bp.route('/<job_id>/feature', methods=['POST'])
@require_auth
def toggle_job_featured(job_id):
    """Feature (or un-feature) a job for a number of days"""
    job = db.get_or_404(Job, job_id)
    if not can_manage_job(job):
        return jsonify({'error': 'Forbidden - Not the job owner'}), 403

    data = request.get_json(silent=True) or {}
    featured = bool(data.get('featured', True))
    days = data.get('days', DEFAULT_FEATURE_DAYS)
    if not isinstance(days, int) or isinstance(days, bool) or days <= 0:
        return jsonify({'error': 'days must be a positive integer'}), 400

    job.is_featured = featured
    job.featured_until = utcnow() + timedelta(days=days) if featured else None
    db.session.commit()
    return jsonify(job.to_dict()), 200


# =============================================
# APPLICATIONS
# =============================================

@bp.route('/<job_id>/applications', methods=['POST'])
@require_role('maid')
def apply_to_job(job_id):
    """Submit an application to an active job"""
    job = db.get_or_404(Job, job_id)
    if job.status != 'active':
        return jsonify({'error': 'Job is not accepting applications'}), 409

    maid_id = request.current_user['uid']
    if JobApplication.query.filter_by(job_id=job.id, maid_id=maid_id).first():
        return jsonify({'error': 'You have already applied to this job'}), 409

    data = normalize_keys(request.get_json(silent=True))
    application = JobApplication(
        job_id=job.id,
        maid_id=maid_id,
        cover_letter=data.get('cover_letter'),
        expected_salary=parse_decimal(data.get('expected_salary'))
    )
    job.applications_count = (job.applications_count or 0) + 1

    try:
        db.session.add(application)
        db.session.flush()
        create_notification(
            job.sponsor_id, 'APPLICATION_RECEIVED', 'New application',
            f'A maid applied to "{job.title}"', 'job_application', application.id
        )
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({'error': 'You have already applied to this job'}), 409

    return jsonify(application.to_dict()), 201


@bp.route('/<job_id>/applications', methods=['GET'])
@require_auth
def get_job_applications(job_id):
    """Applications received for a job (owner only)"""
    job = db.get_or_404(Job, job_id)
    if not can_manage_job(job):
        return jsonify({'error': 'Forbidden - Not the job owner'}), 403

    query = job.applications
    status = request.args.get('status')
    if status:
        query = query.filter_by(status=status)
    applications = query.order_by(JobApplication.created_at.desc()).all()
    return jsonify({
        'applications': [a.to_dict() for a in applications],
        'total': len(applications)
    }), 200


@bp.route('/applications/mine', methods=['GET'])
@require_role('maid')
def get_my_applications():
    applications = JobApplication.query.filter_by(maid_id=request.current_user['uid']) \
        .order_by(JobApplication.created_at.desc()).all()
    data = []
    for application in applications:
        application_dict = application.to_dict()
        application_dict['job'] = application.job.to_dict() if application.job else None
        data.append(application_dict)
    return jsonify({'applications': data, 'total': len(data)}), 200


def load_application(application_id):
    application = db.get_or_404(JobApplication, application_id)
    uid = request.current_user['uid']
    is_owner = application.job.sponsor_id == uid or is_admin()
    return application, is_owner, application.maid_id == uid


@bp.route('/applications/<application_id>', methods=['GET'])
@require_auth
def get_application(application_id):
    application, is_owner, is_applicant = load_application(application_id)
    if not (is_owner or is_applicant):
        return jsonify({'error': 'Forbidden'}), 403
    application_dict = application.to_dict()
    application_dict['job'] = application.job.to_dict()
    return jsonify(application_dict), 200


@bp.route('/applications/<application_id>/status', methods=['PATCH'])
@require_auth
def update_application_status(application_id):
    """Move an application through review (job owner only); notifies the maid"""
    application, is_owner, _ = load_application(application_id)
    if not is_owner:
        return jsonify({'error': 'Forbidden - Not the job owner'}), 403

    data = request.get_json(silent=True) or {}
    status = data.get('status')
    if status not in APPLICATION_STATUSES or status == 'withdrawn':
        return jsonify({'error': 'Invalid application status'}), 400
    if application.status in FINAL_APPLICATION_STATUSES:
        return jsonify({'error': f'Application is already {application.status}'}), 409

    application.status = status
    if data.get('notes') is not None:
        application.notes = data['notes']
    create_notification(
        application.maid_id, 'APPLICATION_UPDATED', 'Application update',
        f'Your application for "{application.job.title}" is now {status}',
        'job_application', application.id
    )
    db.session.commit()
    return jsonify(application.to_dict()), 200


@bp.route('/applications/<application_id>/notes', methods=['PUT'])
@require_auth
def update_application_notes(application_id):
    application, is_owner, _ = load_application(application_id)
    if not is_owner:
        return jsonify({'error': 'Forbidden - Not the job owner'}), 403

    data = request.get_json(silent=True) or {}
    application.notes = data.get('notes')
    db.session.commit()
    return jsonify(application.to_dict()), 200


@bp.route('/applications/<application_id>/withdraw', methods=['POST'])
@require_auth
def withdraw_application(application_id):
    application, _, is_applicant = load_application(application_id)
    if not is_applicant:
        return jsonify({'error': 'Forbidden - Not your application'}), 403
    if application.status in FINAL_APPLICATION_STATUSES:
        return jsonify({'error': f'Application is already {application.status}'}), 409

    application.status = 'withdrawn'
    db.session.commit()
    return jsonify(application.to_dict()), 200
