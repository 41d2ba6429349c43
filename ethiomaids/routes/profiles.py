from flask import Blueprint, request, jsonify, current_app
from sqlalchemy.exc import IntegrityError
from ethiomaids import db
from ethiomaids.models.profile import Profile
from ethiomaids.models.favorite import Favorite
from ethiomaids.utils.auth import require_auth, require_role
from ethiomaids.utils.helpers import (
    normalize_keys, parse_date, parse_decimal, get_pagination_args, paginated_response, ilike_pattern
)
from ethiomaids.utils.validators import validate_profile, validate_maid_details
from ethiomaids.utils.rbac import check_usage_quota
from ethiomaids.utils.subscriptions import get_quota_plan_type

bp = Blueprint('profiles', __name__)

COMMON_FIELDS = ('full_name', 'phone_number', 'country', 'city', 'avatar_url')
MAID_FIELDS = (
    'date_of_birth', 'nationality', 'experience_years', 'skills', 'languages',
    'expected_salary', 'currency', 'availability_status', 'bio', 'agency_id'
)
AGENCY_FIELDS = ('agency_name', 'license_number')

MAID_SORTS = {
    'newest': Profile.created_at.desc(),
    'experience': Profile.experience_years.desc(),
    'salary_low': Profile.expected_salary.asc(),
    'salary_high': Profile.expected_salary.desc(),
}


def editable_fields(user_type):
    if user_type == 'maid':
        return COMMON_FIELDS + MAID_FIELDS
    if user_type == 'agency':
        return COMMON_FIELDS + AGENCY_FIELDS
    return COMMON_FIELDS


def apply_profile_fields(profile, data):
    for field in editable_fields(profile.user_type):
        if field not in data:
            continue
        value = data[field]
        if field == 'date_of_birth':
            value = parse_date(value)
        elif field == 'expected_salary':
            value = parse_decimal(value)
        elif field == 'full_name' and value:
            value = value.strip()
        setattr(profile, field, value)


def agency_missing(data):
    """True when the payload names an agency_id that is not an agency profile"""
    if not data.get('agency_id'):
        return False
    agency = db.session.get(Profile, data['agency_id'])
    return agency is None or agency.user_type != 'agency'


def validation_errors(data, user_type, partial):
    errors = validate_profile(dict(data, user_type=user_type), partial=partial)
    if user_type == 'maid':
        errors.update(validate_maid_details(data))
    return errors


@bp.route('/me', methods=['GET'])
@require_auth
def get_my_profile():
    """Get the caller's own profile"""
    profile = request.current_user.get('profile')
    if profile is None:
        return jsonify({'error': 'Profile not found'}), 404
    return jsonify(profile.to_dict()), 200


@bp.route('/', methods=['POST'])
@require_auth
def create_profile():
    """
    Create the caller's profile
    ---
    tags:
      - Profiles
    security:
      - Bearer: []
    requestBody:
      required: true
      content:
        application/json:
          schema:
            type: object
            required:
              - full_name
              - user_type
            properties:
              full_name:
                type: string
              user_type:
                type: string
                enum: [maid, sponsor, agency]
              phone_number:
                type: string
              country:
                type: string
    responses:
      201:
        description: Profile created
      400:
        description: Validation failed
      409:
        description: Profile already exists
    """
    current_user = request.current_user
    if current_user.get('profile') is not None:
        return jsonify({'error': 'Profile already exists'}), 409

    data = normalize_keys(request.get_json(silent=True))
    user_type = data.get('user_type')
    user_type = user_type.strip().lower() if isinstance(user_type, str) else ''
    email = data.get('email') or current_user.get('email')

    errors = validation_errors(dict(data, email=email), user_type, partial=False)
    if errors:
        return jsonify({'error': 'Validation failed', 'errors': errors}), 400

    if user_type == 'maid' and agency_missing(data):
        return jsonify({'error': 'Agency not found'}), 404

    profile = Profile(id=current_user['uid'], email=email, user_type=user_type)
    apply_profile_fields(profile, data)

    try:
        db.session.add(profile)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({'error': 'A profile with this email already exists'}), 409

    current_app.logger.info(f"Created {user_type} profile for {profile.id}")
    return jsonify(profile.to_dict()), 201


@bp.route('/me', methods=['PUT'])
@require_auth
def update_my_profile():
    """Update the caller's profile (only fields editable for their user type)"""
    profile = request.current_user.get('profile')
    if profile is None:
        return jsonify({'error': 'Profile not found'}), 404

    data = normalize_keys(request.get_json(silent=True))
    errors = validation_errors(data, profile.user_type, partial=True)
    errors.pop('user_type', None)
    if errors:
        return jsonify({'error': 'Validation failed', 'errors': errors}), 400

    if profile.user_type == 'maid' and agency_missing(data):
        return jsonify({'error': 'Agency not found'}), 404

    apply_profile_fields(profile, data)
    db.session.commit()
    return jsonify(profile.to_dict()), 200


@bp.route('/maids', methods=['GET'])
def browse_maids():
    """
    Browse maid profiles
    ---
    tags:
      - Profiles
    parameters:
      - name: nationality
        in: query
        schema:
          type: string
      - name: country
        in: query
        schema:
          type: string
      - name: skill
        in: query
        schema:
          type: string
      - name: language
        in: query
        schema:
          type: string
      - name: min_experience
        in: query
        schema:
          type: integer
      - name: availability
        in: query
        schema:
          type: string
          enum: [available, busy, hired]
      - name: agency_id
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
          enum: [newest, experience, salary_low, salary_high]
    responses:
      200:
        description: Paginated maid profiles
    """
    page, per_page = get_pagination_args()
    query = Profile.query.filter(Profile.user_type == 'maid', Profile.is_active.is_(True))

    nationality = request.args.get('nationality')
    if nationality:
        query = query.filter(Profile.nationality == nationality)
    country = request.args.get('country')
    if country:
        query = query.filter(Profile.country == country)
    skill = request.args.get('skill')
    if skill:
        query = query.filter(db.cast(Profile.skills, db.String).ilike(ilike_pattern(f'"{skill}"'), escape='\\'))
    language = request.args.get('language')
    if language:
        query = query.filter(db.cast(Profile.languages, db.String).ilike(ilike_pattern(f'"{language}"'), escape='\\'))
    min_experience = request.args.get('min_experience', type=int)
    if min_experience is not None:
        query = query.filter(Profile.experience_years >= min_experience)
    availability = request.args.get('availability')
    if availability:
        query = query.filter(Profile.availability_status == availability)
    agency_id = request.args.get('agency_id')
    if agency_id:
        query = query.filter(Profile.agency_id == agency_id)
    search = request.args.get('search', '').strip()
    if search:
        pattern = ilike_pattern(search)
        query = query.filter(db.or_(
            Profile.full_name.ilike(pattern, escape='\\'),
            Profile.bio.ilike(pattern, escape='\\')
        ))

    order = MAID_SORTS.get(request.args.get('sort', 'newest'), MAID_SORTS['newest'])
    pagination = query.order_by(order, Profile.id).paginate(page=page, per_page=per_page, error_out=False)
    return jsonify(paginated_response('maids', pagination, Profile.to_public_dict, page, per_page)), 200


@bp.route('/<profile_id>', methods=['GET'])
def get_public_profile(profile_id):
    """Public view of a profile"""
    profile = db.get_or_404(Profile, profile_id)
    if profile.is_active is False:
        return jsonify({'error': 'Profile not found'}), 404
    return jsonify(profile.to_public_dict()), 200


# =============================================
# FAVORITES
# =============================================

@bp.route('/favorites', methods=['GET'])
@require_role('sponsor')
def get_favorites():
    """Maids saved by the sponsor, newest first"""
    favorites = Favorite.query.filter_by(sponsor_id=request.current_user['uid']) \
        .order_by(Favorite.created_at.desc(), Favorite.id).all()
    return jsonify({'favorites': [f.to_dict() for f in favorites], 'total': len(favorites)}), 200


@bp.route('/favorites', methods=['POST'])
@require_role('sponsor')
def add_favorite():
    """
    Save a maid to the sponsor's favorites
    ---
    tags:
      - Profiles
    security:
      - Bearer: []
    requestBody:
      required: true
      content:
        application/json:
          schema:
            type: object
            required:
              - maid_id
            properties:
              maid_id:
                type: string
              notes:
                type: string
    responses:
      201:
        description: Maid saved
      200:
        description: Maid was already saved (notes updated when given)
      400:
        description: Missing maid_id or notes not a string
      403:
        description: Saved candidates quota reached
      404:
        description: Maid not found
    """
    data = normalize_keys(request.get_json(silent=True))
    maid_id = data.get('maid_id')
    notes = data.get('notes')
    if not maid_id or not isinstance(maid_id, str):
        return jsonify({'error': 'maid_id is required'}), 400
    if notes is not None and not isinstance(notes, str):
        return jsonify({'error': 'notes must be a string'}), 400

    maid = db.session.get(Profile, maid_id)
    if maid is None or maid.user_type != 'maid':
        return jsonify({'error': 'Maid not found'}), 404

    sponsor_id = request.current_user['uid']
    favorite = Favorite.query.filter_by(sponsor_id=sponsor_id, maid_id=maid_id).first()
    if favorite is not None:
        if notes is not None:
            favorite.notes = notes
            db.session.commit()
        return jsonify(favorite.to_dict()), 200

    saved = Favorite.query.filter_by(sponsor_id=sponsor_id).count()
    quota = check_usage_quota('sponsor', get_quota_plan_type(sponsor_id), 'saved_candidates', saved)
    if not quota['allowed']:
        return jsonify({
            'error': 'Saved candidates limit reached for your plan',
            'upgrade_required': True,
            'quota': quota
        }), 403

    favorite = Favorite(sponsor_id=sponsor_id, maid_id=maid_id, notes=notes or '')
    try:
        db.session.add(favorite)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({'error': 'Maid is already in your favorites'}), 409
    return jsonify(favorite.to_dict()), 201


@bp.route('/favorites/<maid_id>', methods=['GET'])
@require_role('sponsor')
def check_favorite(maid_id):
    favorite = Favorite.query.filter_by(sponsor_id=request.current_user['uid'], maid_id=maid_id).first()
    return jsonify({'maid_id': maid_id, 'is_favorited': favorite is not None}), 200


@bp.route('/favorites/<maid_id>', methods=['DELETE'])
@require_role('sponsor')
def remove_favorite(maid_id):
    removed = Favorite.query.filter_by(sponsor_id=request.current_user['uid'], maid_id=maid_id).delete()
    if not removed:
        return jsonify({'error': 'Maid is not in your favorites'}), 404
    db.session.commit()
    return jsonify({'message': 'Removed from favorites', 'affected_rows': removed}), 200
