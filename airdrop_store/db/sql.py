"""Static SQL statements used by the airdrop loader."""

SCHEMA_DDL = (
    """
    create table if not exists airdrops (
        id bigserial primary key,
        label text not null,
        root bytea not null check (octet_length(root) = 32),
        hash_fn text not null default 'keccak256',
        token_address bytea check (token_address is null or octet_length(token_address) = 20),
        created_at timestamptz not null default now()
    );

    create table if not exists airdrop_recipients (
        airdrop_id bigint not null references airdrops (id) on delete cascade,
        address bytea not null check (octet_length(address) = 20),
        amount numeric not null check (amount >= 0 and amount = trunc(amount)),
        leaf bytea not null check (octet_length(leaf) = 32),
        proof bytea[] not null check (cardinality(proof) > 0),
        reasons text[] not null default '{}',
        primary key (airdrop_id, address)
    );
    """
).strip()

SET_STATEMENT_TIMEOUT = "select set_config('statement_timeout', %(timeout)s, true)"

INSERT_AIRDROP = (
    """
    insert into airdrops (label, root, hash_fn, token_address, created_at)
    values (%(label)s, %(root)s, %(hash_fn)s, %(token_address)s, now())
    returning id;
    """
).strip()

LOCK_AIRDROP = (
    """
    select id, '0x' || encode(root, 'hex') as root
    from airdrops
    where id = %(airdrop_id)s
    for update;
    """
).strip()

UPSERT_RECIPIENT = (
    """
    insert into airdrop_recipients (airdrop_id, address, amount, leaf, proof, reasons)
    values (
        %(airdrop_id)s,
        %(address)s,
        %(amount)s::numeric,
        %(leaf)s,
        %(proof)s::bytea[],
        %(reasons)s::text[]
    )
    on conflict (airdrop_id, address) do update
    set
        amount = excluded.amount,
        leaf = excluded.leaf,
        proof = excluded.proof,
        reasons = excluded.reasons
    returning (xmax = 0) as inserted;
    """
).strip()

SELECT_AIRDROP = (
    """
    select
        a.id,
        a.label,
        '0x' || encode(a.root, 'hex') as root,
        a.hash_fn,
        case when a.token_address is null then null
             else '0x' || encode(a.token_address, 'hex') end as token_address,
        a.created_at,
        (select count(*) from airdrop_recipients r where r.airdrop_id = a.id) as recipient_count
    from airdrops a
    where a.id = %(airdrop_id)s;
    """
).strip()

SELECT_RECIPIENT = (
    """
    select
        r.airdrop_id,
        '0x' || encode(r.address, 'hex') as address,
        r.amount::text as amount,
        '0x' || encode(r.leaf, 'hex') as leaf,
        '0x' || encode(a.root, 'hex') as root,
        r.proof,
        r.reasons
    from airdrop_recipients r
    join airdrops a on a.id = r.airdrop_id
    where r.airdrop_id = %(airdrop_id)s and r.address = %(address)s;
    """
).strip()
