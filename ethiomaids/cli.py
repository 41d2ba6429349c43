"""Admin commands: ``flask init-db``, ``flask claims ...`` and ``flask users ...``"""
import json

import click
from flask import current_app
from flask.cli import AppGroup

from ethiomaids import db
from ethiomaids.utils.claims import VALID_ROLES, BASE_ROLE, role_from_claims
from ethiomaids.utils.db_init import initialize_database
from ethiomaids.utils.firebase import (
    FirebaseAdminError, get_user, get_custom_claims, list_users, set_user_role, sync_claims_for_user
)

claims_cli = AppGroup('claims', help='Inspect and manage Firebase custom claims.')
users_cli = AppGroup('users', help='Manage user profiles.')


@click.command('init-db')
def init_db_command():
    """Create database tables (safe to run repeatedly)."""
    if not initialize_database():
        raise click.ClickException('Database initialization failed')
    click.echo('Database initialized')


@claims_cli.command('set-role')
@click.argument('uid')
@click.argument('role', type=click.Choice(VALID_ROLES))
def set_role_command(uid, role):
    """Write full claims for ROLE and update the profile."""
    from ethiomaids.models.profile import Profile

    try:
        set_user_role(uid, role)
    except FirebaseAdminError as e:
        raise click.ClickException(str(e))

    profile = db.session.get(Profile, uid)
    if profile is not None:
        profile.user_type = role
        db.session.commit()
    click.echo(f'{uid}: role set to {role}')


@claims_cli.command('show')
@click.argument('uid')
def show_command(uid):
    """Print the custom claims of a user."""
    try:
        record = get_user(uid)
    except FirebaseAdminError as e:
        raise click.ClickException(str(e))
    if record is None:
        raise click.ClickException(f'User not found: {uid}')

    click.echo(f"uid: {uid}")
    click.echo(f"email: {record.get('email') or '-'}")
    click.echo(json.dumps(get_custom_claims(record), indent=2, sort_keys=True))


@claims_cli.command('sync')
@click.argument('uid')
def sync_command(uid):
    """Set claims from the role recorded in the database."""
    try:
        role = sync_claims_for_user(uid)
    except FirebaseAdminError as e:
        raise click.ClickException(str(e))
    click.echo(f'{uid}: synced role {role}')


@claims_cli.command('backfill')
@click.option('--dry-run', is_flag=True, help='Only print what would change.')
def backfill_command(dry_run):
    """Write claims for every profile."""
    from ethiomaids.models.profile import Profile

    updated = failed = 0
    for profile in Profile.query.order_by(Profile.created_at, Profile.id).all():
        role = profile.user_type or BASE_ROLE
        if dry_run:
            click.echo(f'[dry-run] {profile.id}: {role}')
            continue
        try:
            set_user_role(profile.id, role)
            updated += 1
            click.echo(f'{profile.id}: {role}')
        except FirebaseAdminError as e:
            failed += 1
            click.echo(f'{profile.id}: failed ({e})', err=True)

    click.echo(f'Updated {updated}, failed {failed}')
    if failed:
        raise click.exceptions.Exit(1)


@users_cli.command('import-firebase')
@click.option('--dry-run', is_flag=True, help='Only print the profiles that would be created.')
def import_firebase_command(dry_run):
    """Create missing profiles for Firebase users, role taken from their claims."""
    from ethiomaids.models.profile import Profile

    namespace = current_app.config.get('HASURA_CLAIMS_NAMESPACE')
    created = skipped = 0
    page_token = None
    while True:
        try:
            records, page_token = list_users(page_token)
        except FirebaseAdminError as e:
            raise click.ClickException(str(e))

        for record in records:
            uid = record.get('localId')
            if not uid or db.session.get(Profile, uid) is not None:
                skipped += 1
                continue
            email = record.get('email')
            if email and Profile.query.filter_by(email=email).first():
                skipped += 1
                continue

            role = role_from_claims(get_custom_claims(record), namespace)
            click.echo(f"{'[dry-run] ' if dry_run else ''}{uid}: {email or '-'} as {role}")
            if not dry_run:
                db.session.add(Profile(
                    id=uid,
                    email=email,
                    full_name=record.get('displayName') or (email.split('@')[0] if email else uid),
                    phone_number=record.get('phoneNumber'),
                    user_type=role
                ))
            created += 1

        if not page_token:
            break

    if not dry_run:
        db.session.commit()
    click.echo(f"{'Would create' if dry_run else 'Created'} {created}, skipped {skipped}")


def register_commands(app):
    app.cli.add_command(init_db_command)
    app.cli.add_command(claims_cli)
    app.cli.add_command(users_cli)
